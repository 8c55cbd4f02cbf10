"""The 256-entry Interrupt Descriptor Table."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from x86tables.entry import Entry
from x86tables.gdt import SegmentSelector
from x86tables.tables import DescriptorTablePointer

_TABLE_SIZE = 256
_FIRST_INTERRUPT = 32
_ENTRY_SIZE = 16
_RESERVED_2_START = 22
_RESERVED_2_COUNT = 6

# Exception vectors that have a named attribute on the table.
_NAMED_FIELDS = {
    0: "divide_error",
    1: "debug",
    2: "non_maskable_interrupt",
    3: "breakpoint",
    4: "overflow",
    5: "bound_range_exceeded",
    6: "invalid_opcode",
    7: "device_not_available",
    8: "double_fault",
    9: "_coprocessor_segment_overrun",
    10: "invalid_tss",
    11: "segment_not_present",
    12: "stack_segment_fault",
    13: "general_protection_fault",
    14: "page_fault",
    15: "_reserved_1",
    16: "x87_floating_point",
    17: "alignment_check",
    18: "machine_check",
    19: "simd_floating_point",
    20: "virtualization",
    21: "cp_protection_exception",
    28: "hv_injection_exception",
    29: "vmm_communication_exception",
    30: "security_exception",
    31: "_reserved_3",
}

_INDEXABLE = frozenset({0, 1, 2, 3, 4, 5, 6, 7, 9, 16, 19, 20, 28})
_RESERVED = frozenset({15, 31, *range(_RESERVED_2_START, _RESERVED_2_START + _RESERVED_2_COUNT)})
_WITH_ERROR_CODE = frozenset({8, 10, 11, 12, 13, 14, 17, 21, 29, 30})
_DIVERGING = frozenset({18})


class InterruptDescriptorTable:
    """An Interrupt Descriptor Table with 256 entries.

    The first 32 entries are CPU exceptions, reachable through named
    attributes; indexing works only for those without an error code.
    Entries 32 to 255 are user-defined interrupts.
    """

    def __init__(self) -> None:
        for name in _NAMED_FIELDS.values():
            setattr(self, name, Entry.missing())
        self._reserved_2 = [Entry.missing() for _ in range(_RESERVED_2_COUNT)]
        self._interrupts = [Entry.missing() for _ in range(_TABLE_SIZE - _FIRST_INTERRUPT)]

    def reset(self) -> None:
        """Reset every entry to a non-present entry."""
        self.__init__()

    def _entry_at(self, index: int) -> Entry:
        name = _NAMED_FIELDS.get(index)
        if name is not None:
            return getattr(self, name)
        if _RESERVED_2_START <= index < _RESERVED_2_START + _RESERVED_2_COUNT:
            return self._reserved_2[index - _RESERVED_2_START]
        return self._interrupts[index - _FIRST_INTERRUPT]

    def __getitem__(self, index: int) -> Entry:
        """Return the entry for ``index``.

        Raises :class:`IndexError` for reserved entries, exceptions with an
        error code, diverging exceptions and indices outside the table.
        """
        if not isinstance(index, int) or isinstance(index, bool):
            raise TypeError(f"IDT indices must be integers, not {type(index).__name__}")
        if index in _INDEXABLE or _FIRST_INTERRUPT <= index < _TABLE_SIZE:
            return self._entry_at(index)
        if index in _RESERVED:
            raise IndexError(f"entry {index} is reserved")
        if index in _WITH_ERROR_CODE:
            raise IndexError(f"entry {index} is an exception with error code")
        if index in _DIVERGING:
            raise IndexError(f"entry {index} is an diverging exception (must not return)")
        raise IndexError(f"no entry with index {index}")

    def slice(self, start: int | None = None, stop: int | None = None) -> list[Entry]:
        """Return the interrupt entries ``start`` up to (not including) ``stop``.

        The returned entries are the table's own, so changes to them show in
        the table. ``start`` defaults to 0 and ``stop`` to 256; the range must
        lie within the user interrupts 32..256.
        """
        lower = 0 if start is None else start
        upper = _TABLE_SIZE if stop is None else stop
        if lower > _TABLE_SIZE or upper > _TABLE_SIZE:
            raise IndexError(f"Index out of range [{lower}..{upper}]")
        if lower < _FIRST_INTERRUPT:
            raise ValueError("Cannot return slice from traps, faults, and exception handlers")
        if lower > upper:
            raise IndexError(f"slice index starts at {lower} but ends at {upper}")
        return self._interrupts[lower - _FIRST_INTERRUPT : upper - _FIRST_INTERRUPT]

    def entries(self) -> Iterator[tuple[int, Entry]]:
        """Yield ``(vector, entry)`` for all 256 entries, reserved ones included."""
        for index in range(_TABLE_SIZE):
            yield index, self._entry_at(index)

    def to_bytes(self) -> bytes:
        """The 4096-byte in-memory form of the table."""
        return b"".join(entry.to_bytes() for _, entry in self.entries())

    def pointer(self, base: int) -> DescriptorTablePointer:
        """Return the descriptor table pointer for this table placed at address ``base``."""
        return DescriptorTablePointer(limit=_TABLE_SIZE * _ENTRY_SIZE - 1, base=base)

    def __repr__(self) -> str:
        present = sum(1 for _, entry in self.entries() if entry.options.is_present())
        return f"InterruptDescriptorTable(present_entries={present})"


def set_general_handler(
    idt: InterruptDescriptorTable,
    addr: int,
    gdt_selector: SegmentSelector | int,
    indices: int | Iterable[int] | None = None,
) -> None:
    """Install the handler at ``addr`` for the given vectors of ``idt``.

    ``indices`` is a single vector, an iterable of vectors, or ``None`` for
    all 256. Reserved vectors and numbers outside 0..255 are skipped.
    """
    if indices is None:
        wanted = set(range(_TABLE_SIZE))
    elif isinstance(indices, int):
        wanted = {indices}
    else:
        wanted = set(indices)
    for index in range(_TABLE_SIZE):
        if index in wanted and index not in _RESERVED:
            idt._entry_at(index).set_handler_addr(addr, gdt_selector)