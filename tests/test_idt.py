import pytest

from x86tables.entry import Entry
from x86tables.gdt import PrivilegeLevel, SegmentSelector
from x86tables.idt import InterruptDescriptorTable, set_general_handler

ADDR = 0x1000
SELECTOR = SegmentSelector(1, PrivilegeLevel.RING0)
RESERVED = {15, 31, 22, 23, 24, 25, 26, 27}


def present(idt, index):
    return dict(idt.entries())[index].options.is_present()


def test_size():
    idt = InterruptDescriptorTable()
    assert len(idt.to_bytes()) == 256 * 16
    assert len(Entry.missing().to_bytes()) == 16


def test_new_table_is_all_missing():
    idt = InterruptDescriptorTable()
    entries = list(idt.entries())
    assert [i for i, _ in entries] == list(range(256))
    assert all(entry == Entry.missing() for _, entry in entries)
    assert not any(entry.options.is_present() for _, entry in entries)


def test_index_returns_named_fields():
    idt = InterruptDescriptorTable()
    assert idt[0] is idt.divide_error
    assert idt[3] is idt.breakpoint
    assert idt[28] is idt.hv_injection_exception
    assert idt[32] is idt[32]


def test_index_entry_is_mutable_in_place():
    idt = InterruptDescriptorTable()
    idt[40].set_handler_addr(ADDR, SELECTOR)
    assert idt[40].handler_addr() == ADDR
    assert idt[40].options.is_present()
    assert not idt[41].options.is_present()


@pytest.mark.parametrize("index", sorted(RESERVED))
def test_index_reserved(index):
    with pytest.raises(IndexError, match="is reserved"):
        InterruptDescriptorTable()[index]


@pytest.mark.parametrize("index", [8, 10, 11, 12, 13, 14, 17, 21, 29, 30])
def test_index_error_code(index):
    with pytest.raises(IndexError, match="exception with error code"):
        InterruptDescriptorTable()[index]


def test_index_diverging():
    with pytest.raises(IndexError, match="diverging exception"):
        InterruptDescriptorTable()[18]


@pytest.mark.parametrize("index", [256, 1000, -1])
def test_index_out_of_range(index):
    with pytest.raises(IndexError, match="no entry with index"):
        InterruptDescriptorTable()[index]


def test_slice_returns_table_entries():
    idt = InterruptDescriptorTable()
    part = idt.slice(32, 64)
    assert len(part) == 32
    assert part[0] is idt[32]
    assert part[-1] is idt[63]
    part[5].set_handler_addr(ADDR, SELECTOR)
    assert idt[37].handler_addr() == ADDR


def test_slice_open_end():
    idt = InterruptDescriptorTable()
    part = idt.slice(200)
    assert len(part) == 56
    assert part[-1] is idt[255]


def test_slice_rejects_exceptions():
    idt = InterruptDescriptorTable()
    with pytest.raises(ValueError, match="Cannot return slice"):
        idt.slice()
    with pytest.raises(ValueError, match="Cannot return slice"):
        idt.slice(10, 40)


def test_slice_out_of_range():
    with pytest.raises(IndexError, match="Index out of range"):
        InterruptDescriptorTable().slice(40, 257)


def test_slice_reversed_bounds():
    with pytest.raises(IndexError):
        InterruptDescriptorTable().slice(50, 40)


def test_reset():
    idt = InterruptDescriptorTable()
    set_general_handler(idt, ADDR, SELECTOR)
    idt.reset()
    assert all(entry == Entry.missing() for _, entry in idt.entries())


def test_pointer():
    pointer = InterruptDescriptorTable().pointer(ADDR)
    assert pointer.limit == 256 * 16 - 1
    assert pointer.base == ADDR


def test_to_bytes_layout():
    idt = InterruptDescriptorTable()
    idt.breakpoint.set_handler_addr(ADDR, SELECTOR)
    idt.page_fault.set_handler_addr(ADDR, SELECTOR)
    data = idt.to_bytes()
    assert data[3 * 16 : 4 * 16] == idt.breakpoint.to_bytes()
    assert data[14 * 16 : 15 * 16] == idt.page_fault.to_bytes()
    assert data[4 * 16 : 5 * 16] == Entry.missing().to_bytes()


def test_default_handlers():
    idt = InterruptDescriptorTable()
    set_general_handler(idt, ADDR, SELECTOR, 0)
    for i in range(256):
        assert present(idt, i) == (i == 0)

    set_general_handler(idt, ADDR, SELECTOR, 14)
    for i in range(256):
        assert present(idt, i) == (i in (0, 14))

    set_general_handler(idt, ADDR, SELECTOR, range(32, 64))
    for i in range(256):
        assert present(idt, i) == (i in (0, 14) or 32 <= i < 64), i

    set_general_handler(idt, ADDR, SELECTOR)
    for i in range(256):
        assert present(idt, i) == (i not in RESERVED), i


def test_general_handler_sets_address_and_selector():
    idt = InterruptDescriptorTable()
    set_general_handler(idt, ADDR, SELECTOR, [8, 100])
    assert idt.double_fault.handler_addr() == ADDR
    assert idt.double_fault.gdt_selector == SELECTOR.value
    assert idt[100].handler_addr() == ADDR


def test_general_handler_ignores_outside_indices():
    idt = InterruptDescriptorTable()
    set_general_handler(idt, ADDR, SELECTOR, [300, -5])
    assert not any(entry.options.is_present() for _, entry in idt.entries())


def test_general_handler_rejects_non_canonical_address():
    idt = InterruptDescriptorTable()
    with pytest.raises(ValueError):
        set_general_handler(idt, 1 << 47, SELECTOR, 3)