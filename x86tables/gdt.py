"""The 64-bit Global Descriptor Table, its descriptors and segment selectors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum, IntFlag

from x86tables.tables import DescriptorTablePointer

_U16_MAX = 0xFFFF
_U64_MAX = 0xFFFF_FFFF_FFFF_FFFF
_GDT_CAPACITY = 8
_ENTRY_SIZE = 8
_DPL_SHIFT = 45
_TSS_AVAILABLE_64 = 0b1001


class GdtFullError(Exception):
    """Raised when a descriptor does not fit into the remaining GDT slots."""


class PrivilegeLevel(IntEnum):
    """A processor privilege ring."""

    RING0 = 0
    RING1 = 1
    RING2 = 2
    RING3 = 3

    @classmethod
    def from_u16(cls, value: int) -> PrivilegeLevel:
        """Return the privilege level for ``value``, which must be in 0..=3."""
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"{value} is not a valid privilege level") from None


class SegmentSelector:
    """A segment selector: a 13-bit descriptor index and a requested privilege level."""

    __slots__ = ("value",)

    def __init__(self, index: int, rpl: PrivilegeLevel) -> None:
        if not 0 <= index <= _U16_MAX >> 3:
            raise ValueError(f"selector index {index} does not fit in 13 bits")
        self.value = (index << 3) | int(PrivilegeLevel(rpl))

    def index(self) -> int:
        """Return the descriptor index this selector refers to."""
        return self.value >> 3

    def rpl(self) -> PrivilegeLevel:
        """Return the requested privilege level."""
        return PrivilegeLevel(self.value & 0b11)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SegmentSelector):
            return NotImplemented
        return self.value == other.value

    def __hash__(self) -> int:
        return hash(self.value)

    def __repr__(self) -> str:
        return f"SegmentSelector(index={self.index()}, rpl={self.rpl().name})"


class DescriptorFlags(IntFlag):
    """Flags of a GDT descriptor. Not all flags are valid for all descriptor types."""

    ACCESSED = 1 << 40
    WRITABLE = 1 << 41
    CONFORMING = 1 << 42
    EXECUTABLE = 1 << 43
    USER_SEGMENT = 1 << 44
    DPL_RING_3 = 3 << 45
    PRESENT = 1 << 47
    AVAILABLE = 1 << 52
    LONG_MODE = 1 << 53
    DEFAULT_SIZE = 1 << 54
    GRANULARITY = 1 << 55

    LIMIT_0_15 = 0xFFFF
    LIMIT_16_19 = 0xF << 48
    BASE_0_23 = 0xFF_FFFF << 16
    BASE_24_31 = 0xFF << 56

    # Flat segments with segmentation, permission checks and access tracking
    # effectively disabled; they match what syscall/sysret and sysenter/sysexit load.
    KERNEL_DATA = (
        USER_SEGMENT
        | PRESENT
        | WRITABLE
        | ACCESSED
        | LIMIT_0_15
        | LIMIT_16_19
        | GRANULARITY
        | DEFAULT_SIZE
    )
    KERNEL_CODE32 = KERNEL_DATA | EXECUTABLE
    KERNEL_CODE64 = (KERNEL_DATA & ~DEFAULT_SIZE) | EXECUTABLE | LONG_MODE
    USER_DATA = KERNEL_DATA | DPL_RING_3
    USER_CODE32 = KERNEL_CODE32 | DPL_RING_3
    USER_CODE64 = KERNEL_CODE64 | DPL_RING_3


class Descriptor(ABC):
    """A 64-bit mode segment descriptor: a user segment or a system segment."""

    __slots__ = ()

    @abstractmethod
    def _low_word(self) -> int:
        """Return the first (or only) 64-bit word of the descriptor."""

    def dpl(self) -> PrivilegeLevel:
        """Return the Descriptor Privilege Level encoded in the descriptor."""
        return PrivilegeLevel.from_u16((self._low_word() & DescriptorFlags.DPL_RING_3) >> _DPL_SHIFT)

    @classmethod
    def kernel_code_segment(cls) -> UserSegment:
        """A 64-bit kernel code segment, suitable for ``syscall`` or 64-bit ``sysenter``."""
        return UserSegment(int(DescriptorFlags.KERNEL_CODE64))

    @classmethod
    def kernel_data_segment(cls) -> UserSegment:
        """A kernel data segment (32-bit or 64-bit)."""
        return UserSegment(int(DescriptorFlags.KERNEL_DATA))

    @classmethod
    def user_data_segment(cls) -> UserSegment:
        """A ring 3 data segment (32-bit or 64-bit), suitable for ``sysret`` or ``sysexit``."""
        return UserSegment(int(DescriptorFlags.USER_DATA))

    @classmethod
    def user_code_segment(cls) -> UserSegment:
        """A 64-bit ring 3 code segment, suitable for ``sysret`` or ``sysexit``."""
        return UserSegment(int(DescriptorFlags.USER_CODE64))

    @classmethod
    def tss_segment(cls, base: int, limit: int) -> SystemSegment:
        """An available 64-bit TSS descriptor for a TSS at ``base``.

        ``limit`` is the inclusive byte limit of the TSS, i.e. its size minus one.
        """
        if not 0 <= base <= _U64_MAX:
            raise ValueError(f"TSS base {base:#x} does not fit in 64 bits")
        if not 0 <= limit <= _U16_MAX:
            raise ValueError(f"TSS limit {limit} does not fit in 16 bits")

        low = int(DescriptorFlags.PRESENT)
        low |= (base & 0xFF_FFFF) << 16
        low |= ((base >> 24) & 0xFF) << 56
        low |= limit
        low |= _TSS_AVAILABLE_64 << 40
        high = base >> 32
        return SystemSegment(low, high)


def _check_word(name: str, value: int) -> None:
    if not 0 <= value <= _U64_MAX:
        raise ValueError(f"{name} {value:#x} does not fit in 64 bits")


@dataclass(frozen=True)
class UserSegment(Descriptor):
    """A code or data segment descriptor occupying one GDT slot."""

    value: int

    def __post_init__(self) -> None:
        _check_word("descriptor value", self.value)

    def _low_word(self) -> int:
        return self.value


@dataclass(frozen=True)
class SystemSegment(Descriptor):
    """A system descriptor (such as a TSS or LDT descriptor) occupying two GDT slots."""

    low: int
    high: int

    def __post_init__(self) -> None:
        _check_word("descriptor low word", self.low)
        _check_word("descriptor high word", self.high)

    def _low_word(self) -> int:
        return self.low


class GlobalDescriptorTable:
    """A 64-bit mode GDT with a fixed capacity of 8 entries.

    The null descriptor in slot 0 is present from the start.
    """

    def __init__(self) -> None:
        self._table = [0] * _GDT_CAPACITY
        self._len = 1

    def __len__(self) -> int:
        return self._len

    def __repr__(self) -> str:
        words = ", ".join(f"{word:#018x}" for word in self.as_raw_slice())
        return f"GlobalDescriptorTable([{words}])"

    @classmethod
    def from_raw_slice(cls, entries) -> GlobalDescriptorTable:
        """Build a GDT from raw 64-bit words; at most 8 are accepted."""
        words = list(entries)
        if len(words) > _GDT_CAPACITY:
            raise ValueError(
                "initializing a GDT from a slice requires it to be **at most** 8 elements."
            )
        for word in words:
            _check_word("GDT entry", word)
        gdt = cls()
        gdt._table[: len(words)] = words
        gdt._len = len(words)
        return gdt

    def as_raw_slice(self) -> tuple[int, ...]:
        """Return the used entries as raw words; system descriptors span two words."""
        return tuple(self._table[: self._len])

    def _push(self, value: int) -> int:
        index = self._len
        self._table[index] = value
        self._len += 1
        return index

    def add_entry(self, entry: Descriptor) -> SegmentSelector:
        """Append ``entry`` and return a selector for it.

        Raises :class:`GdtFullError` if there are not enough free slots.
        """
        match entry:
            case UserSegment(value=value):
                if self._len > _GDT_CAPACITY - 1:
                    raise GdtFullError("GDT full")
                index = self._push(value)
            case SystemSegment(low=low, high=high):
                if self._len > _GDT_CAPACITY - 2:
                    raise GdtFullError("GDT requires two free spaces to hold a SystemSegment")
                index = self._push(low)
                self._push(high)
            case _:
                raise TypeError(f"expected a Descriptor, got {type(entry).__name__}")
        return SegmentSelector(index, entry.dpl())

    def pointer(self, base: int) -> DescriptorTablePointer:
        """Return the descriptor table pointer for this table placed at address ``base``."""
        return DescriptorTablePointer(limit=self._len * _ENTRY_SIZE - 1, base=base)