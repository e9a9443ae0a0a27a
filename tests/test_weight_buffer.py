from array import array

import pytest

from sirkit.weight_buffer import BufferDtype, WeightBuffer, WeightDescriptor


def test_add_and_get_round_trip():
    buffer = WeightBuffer()
    data = array("f", [1.0, 2.0, 3.0])
    returned = buffer.add("w", data, BufferDtype.F32)
    assert returned.tolist() == [1.0, 2.0, 3.0]
    assert buffer.get("w").tolist() == [1.0, 2.0, 3.0]


def test_raw_bytes_match_source():
    buffer = WeightBuffer()
    data = array("i", [7, -3, 11])
    buffer.add("ints", data, BufferDtype.I32)
    assert buffer.raw_bytes("ints") == data.tobytes()


def test_existing_name_is_not_overwritten():
    buffer = WeightBuffer()
    buffer.add("w", array("f", [1.0, 2.0]))
    again = buffer.add("w", array("f", [9.0, 9.0, 9.0]))
    assert again.tolist() == [1.0, 2.0]
    assert buffer.get("w").tolist() == [1.0, 2.0]
    assert len(buffer) == 1


def test_stored_data_is_a_copy():
    buffer = WeightBuffer()
    data = array("f", [1.0, 2.0])
    buffer.add("w", data)
    data[0] = 42.0
    assert buffer.get("w").tolist() == [1.0, 2.0]


def test_returned_view_is_read_only():
    buffer = WeightBuffer()
    view = buffer.add("w", array("f", [1.0]))
    with pytest.raises(TypeError):
        view[0] = 5.0
    assert view.tolist() == [1.0]
    assert buffer.get("w").tolist() == [1.0]


def test_missing_name_returns_none():
    buffer = WeightBuffer()
    assert buffer.get("nope") is None
    assert buffer.raw_bytes("nope") is None
    assert buffer.descriptor("nope") is None


def test_descriptor_records_shape_and_dtype():
    buffer = WeightBuffer()
    data = array("d", [1.0, 2.0, 3.0, 4.0])
    buffer.add("w", data, BufferDtype.F64)
    desc = buffer.descriptor("w")
    assert desc.num_elements == len(data)
    assert desc.byte_width == data.itemsize
    assert desc.dtype is BufferDtype.F64
    assert desc.total_bytes() == len(data.tobytes())


def test_descriptor_total_bytes():
    assert WeightDescriptor(3, 4, BufferDtype.F32).total_bytes() == 12


def test_default_descriptor_is_empty_and_unknown():
    desc = WeightDescriptor()
    assert desc.total_bytes() == 0
    assert desc.dtype is BufferDtype.UNKNOWN


def test_contains_count_and_remove():
    buffer = WeightBuffer()
    buffer.add("a", array("f", [1.0]))
    buffer.add("b", array("f", [2.0]))
    assert "a" in buffer
    assert len(buffer) == 2
    buffer.remove("a")
    assert "a" not in buffer
    assert list(buffer) == ["b"]


def test_remove_missing_is_ignored():
    buffer = WeightBuffer()
    buffer.add("a", array("f", [1.0]))
    buffer.remove("zzz")
    assert len(buffer) == 1


def test_non_buffer_data_is_rejected():
    buffer = WeightBuffer()
    with pytest.raises(TypeError):
        buffer.add("w", [1.0, 2.0])
    assert "w" not in buffer