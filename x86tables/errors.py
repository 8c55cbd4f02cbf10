"""Error codes and exception vector numbers delivered with CPU exceptions."""

from __future__ import annotations

from enum import Enum, IntEnum, IntFlag

_U16_MAX = 0xFFFF


class PageFaultErrorCode(IntFlag):
    """The error code pushed by the processor on a page fault.

    Bits that do not correspond to a named flag are kept as they are.
    """

    PROTECTION_VIOLATION = 1
    CAUSED_BY_WRITE = 1 << 1
    USER_MODE = 1 << 2
    MALFORMED_TABLE = 1 << 3
    INSTRUCTION_FETCH = 1 << 4
    PROTECTION_KEY = 1 << 5
    SHADOW_STACK = 1 << 6
    SGX = 1 << 15
    RMP = 1 << 31


class DescriptorTable(Enum):
    """The descriptor table a selector error code refers to."""

    GDT = "gdt"
    IDT = "idt"
    LDT = "ldt"


_TABLE_BY_BITS = {
    0b00: DescriptorTable.GDT,
    0b01: DescriptorTable.IDT,
    0b10: DescriptorTable.LDT,
    0b11: DescriptorTable.IDT,
}


class SelectorErrorCode:
    """An error code that refers to a segment selector.

    Only the low 16 bits are meaningful; the rest are reserved.
    """

    __slots__ = ("value",)

    def __init__(self, value: int) -> None:
        if not 0 <= value <= _U16_MAX:
            raise ValueError(f"selector error code {value:#x} has reserved bits set")
        self.value = value

    @classmethod
    def new_truncate(cls, value: int) -> SelectorErrorCode:
        """Create an error code from ``value``, dropping the reserved bits 16..64."""
        return cls(value & _U16_MAX)

    def external(self) -> bool:
        """Whether the exception occurred while delivering an event external to the program."""
        return bool(self.value & 1)

    def descriptor_table(self) -> DescriptorTable:
        """The descriptor table this error code refers to."""
        return _TABLE_BY_BITS[(self.value >> 1) & 0b11]

    def index(self) -> int:
        """The index of the selector that caused the error."""
        return (self.value >> 3) & 0x1FFF

    def is_null(self) -> bool:
        """Whether the processor pushed zero rather than a selector error code."""
        return self.value == 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SelectorErrorCode):
            return NotImplemented
        return self.value == other.value

    def __hash__(self) -> int:
        return hash(self.value)

    def __repr__(self) -> str:
        return (
            f"SelectorErrorCode(external={self.external()}, "
            f"descriptor_table={self.descriptor_table().name}, index={self.index()})"
        )


class ExceptionVector(IntEnum):
    """The CPU-internal exception vector numbers."""

    DIVISION = 0x00
    DEBUG = 0x01
    NON_MASKABLE_INTERRUPT = 0x02
    BREAKPOINT = 0x03
    OVERFLOW = 0x04
    BOUND_RANGE = 0x05
    INVALID_OPCODE = 0x06
    DEVICE_NOT_AVAILABLE = 0x07
    DOUBLE = 0x08
    INVALID_TSS = 0x0A
    SEGMENT_NOT_PRESENT = 0x0B
    STACK = 0x0C
    GENERAL_PROTECTION = 0x0D
    PAGE = 0x0E
    X87_FLOATING_POINT = 0x10
    ALIGNMENT_CHECK = 0x11
    MACHINE_CHECK = 0x12
    SIMD_FLOATING_POINT = 0x13
    VIRTUALIZATION = 0x14
    CONTROL_PROTECTION = 0x15
    HYPERVISOR_INJECTION = 0x1C
    VMM_COMMUNICATION = 0x1D
    SECURITY = 0x1E