# x86tables

Pure data models of the x86_64 descriptor tables. Use it to build a Global
Descriptor Table or an Interrupt Descriptor Table, encode the entries in the
layout the processor expects, and decode the error codes that exceptions
push. You get the integers and bytes you would hand to `lgdt` or `lidt`.

## Installation

```
pip install x86tables
```

## Modules

- `x86tables.tables` – `DescriptorTablePointer`, the 10-byte limit/base
  structure (`to_bytes`, `from_bytes`).
- `x86tables.gdt` – `GlobalDescriptorTable`, `Descriptor` with its two kinds
  `UserSegment` and `SystemSegment`, `DescriptorFlags`, `SegmentSelector`,
  `PrivilegeLevel` and `GdtFullError`.
- `x86tables.entry` – IDT `Entry`, its `EntryOptions`, and
  `InterruptStackFrame`.
- `x86tables.idt` – `InterruptDescriptorTable` and `set_general_handler`.
- `x86tables.errors` – `PageFaultErrorCode`, `SelectorErrorCode`,
  `DescriptorTable` and `ExceptionVector`.

## Global Descriptor Table

```python
from x86tables.gdt import Descriptor, GlobalDescriptorTable, PrivilegeLevel

gdt = GlobalDescriptorTable()
code = gdt.add_entry(Descriptor.kernel_code_segment())
data = gdt.add_entry(Descriptor.kernel_data_segment())
user = gdt.add_entry(Descriptor.user_code_segment())
tss = gdt.add_entry(Descriptor.tss_segment(base=0x10_0000, limit=0x67))

print(code.index(), code.rpl().name)     # 1 RING0
print(user.rpl() is PrivilegeLevel.RING3) # True
print([hex(v) for v in gdt.as_raw_slice()])
print(gdt.pointer(base=0x20_0000).to_bytes())
```

The table holds eight 64-bit slots, the first of which is the null
descriptor; `len(gdt)` counts the slots in use. A system segment such as a
TSS takes two slots. Adding an entry that does not fit raises
`GdtFullError`. `GlobalDescriptorTable.from_raw_slice` builds a table from at
most eight raw words.

`Descriptor.tss_segment` takes the TSS's address and its inclusive byte
limit (size minus one) and returns an available 64-bit TSS descriptor.

`DescriptorFlags` exposes the individual bits plus the usual flat segments:
`KERNEL_CODE64`, `KERNEL_CODE32`, `KERNEL_DATA`, `USER_CODE64`,
`USER_CODE32` and `USER_DATA`.

## Interrupt Descriptor Table

```python
from x86tables.gdt import PrivilegeLevel
from x86tables.idt import InterruptDescriptorTable, set_general_handler

idt = InterruptDescriptorTable()
idt.breakpoint.set_handler_addr(0xFFFF_8000_0000_1000, gdt_selector=0x08) \
    .set_privilege_level(PrivilegeLevel.RING3)
idt.double_fault.set_handler_addr(0xFFFF_8000_0000_2000, gdt_selector=0x08) \
    .set_stack_index(0)

set_general_handler(idt, 0xFFFF_8000_0000_3000, 0x08, range(32, 64))

raw = idt.to_bytes()                      # 256 * 16 bytes
pointer = idt.pointer(base=0xFFFF_8000_0010_0000)
```

Handler addresses must be canonical 48-bit virtual addresses;
`gdt_selector` may be an `int` or a `SegmentSelector`. The setters on
`EntryOptions` change the options in place and return them, so calls chain.

Indexing with `idt[n]` works for exceptions without an error code and for
vectors 32–255. Reserved vectors, exceptions that push an error code, the
machine check and numbers outside the table raise `IndexError`; reach the
exceptions through their named attributes (`double_fault`, `page_fault`,
`general_protection_fault`, …). `idt.slice(start, stop)` returns the table's
own entries for user interrupts in that range and raises if the range
starts below 32. `idt.entries()` yields `(vector, entry)` for all 256
vectors, and `idt.reset()` makes every entry non-present again.

`set_general_handler` installs one address for a single vector, an iterable
of vectors, or all vectors when `indices` is `None`; reserved vectors are
skipped.

## Error codes

```python
from x86tables.errors import DescriptorTable, PageFaultErrorCode, SelectorErrorCode

code = PageFaultErrorCode.CAUSED_BY_WRITE | PageFaultErrorCode.USER_MODE
selector = SelectorErrorCode(0x12)
print(selector.descriptor_table() is DescriptorTable.IDT, selector.index())  # True 2
```

`SelectorErrorCode` raises `ValueError` for values with reserved bits set;
use `SelectorErrorCode.new_truncate` to drop them instead. `ExceptionVector`
names the architectural exception vectors.

## What it does not do

Nothing here talks to a processor: the package does not load tables,
reload segment registers or run interrupt handlers. It does not model the
Task State Segment itself either; a TSS descriptor is built from an address
and limit you supply.

## Running the tests

```
pip install -e ".[test]"
pytest
```