import pytest

from x86tables.tables import DescriptorTablePointer


def test_packed_size_is_ten_bytes():
    pointer = DescriptorTablePointer(limit=5, base=0)
    assert len(pointer.to_bytes()) == 10


def test_limit_comes_first_little_endian():
    pointer = DescriptorTablePointer(limit=5, base=0)
    assert pointer.to_bytes() == b"\x05\x00" + bytes(8)


def test_base_follows_limit():
    pointer = DescriptorTablePointer(limit=0, base=0x0102030405060708)
    data = pointer.to_bytes()
    assert data[:2] == b"\x00\x00"
    assert data[2:] == (0x0102030405060708).to_bytes(8, "little")


@pytest.mark.parametrize(
    "limit, base",
    [(0, 0), (5, 0), (0xFFFF, 0xFFFF_FFFF_FFFF_FFFF), (4095, 0xFFFF_8000_0000_1000)],
)
def test_round_trip(limit, base):
    pointer = DescriptorTablePointer(limit=limit, base=base)
    assert DescriptorTablePointer.from_bytes(pointer.to_bytes()) == pointer


@pytest.mark.parametrize("data", [b"", bytes(9), bytes(11)])
def test_from_bytes_rejects_wrong_length(data):
    with pytest.raises(ValueError):
        DescriptorTablePointer.from_bytes(data)


@pytest.mark.parametrize("limit", [-1, 0x10000])
def test_limit_out_of_range(limit):
    with pytest.raises(ValueError):
        DescriptorTablePointer(limit=limit, base=0)


@pytest.mark.parametrize("base", [-1, 1 << 64])
def test_base_out_of_range(base):
    with pytest.raises(ValueError):
        DescriptorTablePointer(limit=0, base=base)