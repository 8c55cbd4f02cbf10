"""The pointer structure handed to the processor to load a descriptor table."""

from __future__ import annotations

import struct
from dataclasses import dataclass

_POINTER_LAYOUT = struct.Struct("<HQ")

_U16_MAX = 0xFFFF
_U64_MAX = 0xFFFF_FFFF_FFFF_FFFF


@dataclass(frozen=True)
class DescriptorTablePointer:
    """A pointer to a descriptor table (GDT or IDT) in the layout used by ``lgdt``/``lidt``.

    ``limit`` is the size of the table in bytes minus one; ``base`` is the
    virtual address of its first byte.
    """

    limit: int
    base: int

    def __post_init__(self) -> None:
        if not 0 <= self.limit <= _U16_MAX:
            raise ValueError(f"descriptor table limit {self.limit} does not fit in 16 bits")
        if not 0 <= self.base <= _U64_MAX:
            raise ValueError(f"descriptor table base {self.base:#x} does not fit in 64 bits")

    def to_bytes(self) -> bytes:
        """Return the packed 10-byte form: a 16-bit limit followed by a 64-bit base."""
        return _POINTER_LAYOUT.pack(self.limit, self.base)

    @classmethod
    def from_bytes(cls, data: bytes) -> DescriptorTablePointer:
        """Parse the packed 10-byte form produced by :meth:`to_bytes`."""
        if len(data) != _POINTER_LAYOUT.size:
            raise ValueError(
                f"a descriptor table pointer is {_POINTER_LAYOUT.size} bytes, got {len(data)}"
            )
        limit, base = _POINTER_LAYOUT.unpack(data)
        return cls(limit=limit, base=base)