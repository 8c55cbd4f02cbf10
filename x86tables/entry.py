"""Interrupt Descriptor Table entries, their options and the interrupt stack frame."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from x86tables.gdt import PrivilegeLevel, SegmentSelector

_ENTRY_LAYOUT = struct.Struct("<HHHHII")

_U16_MAX = 0xFFFF
_U64_MAX = 0xFFFF_FFFF_FFFF_FFFF
_ADDR_BITS = 48
_ADDR_MASK = (1 << _ADDR_BITS) - 1
_SIGN_BIT = 1 << (_ADDR_BITS - 1)
_UPPER_BITS = _U64_MAX ^ _ADDR_MASK

_PRESENT_BIT = 15
_INTERRUPTS_BIT = 8
_DPL_SHIFT = 13
_DPL_MASK = 0b11 << _DPL_SHIFT
_STACK_MASK = 0b111
_MAX_STACK_INDEX = 6


def _sign_extend(addr: int) -> int:
    """Return ``addr`` truncated to 48 bits and sign-extended into a canonical address."""
    addr &= _ADDR_MASK
    if addr & _SIGN_BIT:
        addr |= _UPPER_BITS
    return addr


def _check_canonical(addr: int) -> None:
    if not 0 <= addr <= _U64_MAX:
        raise ValueError(f"address {addr:#x} does not fit in 64 bits")
    if _sign_extend(addr) != addr:
        raise ValueError(f"address {addr:#x} is not canonical")


class EntryOptions:
    """The 16-bit options field of an IDT entry.

    Setters change the field in place and return it, so calls can be chained.
    """

    __slots__ = ("value",)

    def __init__(self, value: int) -> None:
        if not 0 <= value <= _U16_MAX:
            raise ValueError(f"entry options {value:#x} do not fit in 16 bits")
        self.value = value

    @classmethod
    def minimal(cls) -> EntryOptions:
        """Options with only the must-be-one bits set."""
        return cls(0b1110_0000_0000)

    def is_present(self) -> bool:
        """Whether the present bit is set."""
        return bool(self.value & (1 << _PRESENT_BIT))

    def _set_bit(self, bit: int, on: bool) -> None:
        if on:
            self.value |= 1 << bit
        else:
            self.value &= ~(1 << bit) & _U16_MAX

    def set_present(self, present: bool) -> EntryOptions:
        """Set or clear the present bit."""
        self._set_bit(_PRESENT_BIT, present)
        return self

    def disable_interrupts(self, disable: bool) -> EntryOptions:
        """Choose whether the CPU disables hardware interrupts when invoking the handler."""
        self._set_bit(_INTERRUPTS_BIT, not disable)
        return self

    def set_privilege_level(self, dpl: PrivilegeLevel) -> EntryOptions:
        """Set the privilege level (DPL) required to invoke the handler."""
        level = PrivilegeLevel(dpl)
        self.value = (self.value & ~_DPL_MASK & _U16_MAX) | (int(level) << _DPL_SHIFT)
        return self

    def set_stack_index(self, index: int) -> EntryOptions:
        """Assign Interrupt Stack Table stack ``index`` (0 to 6) to the handler."""
        if not 0 <= index <= _MAX_STACK_INDEX:
            raise ValueError(f"IST index {index} is not in the range 0..7")
        # The hardware IST index starts at 1, the software index at 0.
        self.value = (self.value & ~_STACK_MASK & _U16_MAX) | (index + 1)
        return self

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EntryOptions):
            return NotImplemented
        return self.value == other.value

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        return f"EntryOptions({self.value:#06x})"


class Entry:
    """A 16-byte Interrupt Descriptor Table entry."""

    __slots__ = (
        "pointer_low",
        "gdt_selector",
        "options",
        "pointer_middle",
        "pointer_high",
        "reserved",
    )

    def __init__(
        self,
        pointer_low: int = 0,
        gdt_selector: int = 0,
        options: EntryOptions | None = None,
        pointer_middle: int = 0,
        pointer_high: int = 0,
        reserved: int = 0,
    ) -> None:
        self.pointer_low = pointer_low
        self.gdt_selector = gdt_selector
        self.options = options if options is not None else EntryOptions.minimal()
        self.pointer_middle = pointer_middle
        self.pointer_high = pointer_high
        self.reserved = reserved

    @classmethod
    def missing(cls) -> Entry:
        """A non-present entry with the must-be-one option bits set."""
        return cls()

    def set_handler_addr(self, addr: int, gdt_selector: SegmentSelector | int) -> EntryOptions:
        """Point the entry at handler ``addr`` using code segment ``gdt_selector``.

        Sets the present bit and returns the entry's options for further changes.
        """
        _check_canonical(addr)
        selector = gdt_selector.value if isinstance(gdt_selector, SegmentSelector) else gdt_selector
        if not 0 <= selector <= _U16_MAX:
            raise ValueError(f"segment selector {selector:#x} does not fit in 16 bits")

        self.pointer_low = addr & 0xFFFF
        self.pointer_middle = (addr >> 16) & 0xFFFF
        self.pointer_high = (addr >> 32) & 0xFFFF_FFFF
        self.gdt_selector = selector
        self.options.set_present(True)
        return self.options

    def handler_addr(self) -> int:
        """The virtual address of the entry's handler."""
        addr = self.pointer_low | (self.pointer_middle << 16) | (self.pointer_high << 32)
        return _sign_extend(addr)

    def to_bytes(self) -> bytes:
        """The 16-byte in-memory form of the entry."""
        return _ENTRY_LAYOUT.pack(
            self.pointer_low,
            self.gdt_selector,
            self.options.value,
            self.pointer_middle,
            self.pointer_high,
            self.reserved,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entry):
            return NotImplemented
        return (
            self.pointer_low == other.pointer_low
            and self.gdt_selector == other.gdt_selector
            and self.options == other.options
            and self.pointer_middle == other.pointer_middle
            and self.pointer_high == other.pointer_high
            and self.reserved == other.reserved
        )

    __hash__ = None  # mutable

    def __copy__(self) -> Entry:
        return Entry(
            self.pointer_low,
            self.gdt_selector,
            EntryOptions(self.options.value),
            self.pointer_middle,
            self.pointer_high,
            self.reserved,
        )

    def __repr__(self) -> str:
        return (
            f"Entry(handler_addr={self.handler_addr():#x}, "
            f"gdt_selector={self.gdt_selector}, options={self.options!r})"
        )


@dataclass(frozen=True)
class InterruptStackFrame:
    """The stack frame pushed by the CPU on interrupt or exception entry."""

    instruction_pointer: int
    code_segment: int
    cpu_flags: int
    stack_pointer: int
    stack_segment: int

    def __post_init__(self) -> None:
        _check_canonical(self.instruction_pointer)
        _check_canonical(self.stack_pointer)
        for name in ("code_segment", "cpu_flags", "stack_segment"):
            value = getattr(self, name)
            if not 0 <= value <= _U64_MAX:
                raise ValueError(f"{name} {value:#x} does not fit in 64 bits")

    def __repr__(self) -> str:
        return (
            f"InterruptStackFrame(instruction_pointer={self.instruction_pointer:#x}, "
            f"code_segment={self.code_segment}, cpu_flags={self.cpu_flags:#x}, "
            f"stack_pointer={self.stack_pointer:#x}, stack_segment={self.stack_segment})"
        )