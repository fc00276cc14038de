"""Tests for byte-order primitives and the patch container codec."""

from __future__ import annotations

import io

import pytest

from transformcache.errors import CodecFailure
from transformcache.patch import codec
from transformcache.patch.codec import DecodeStatus, PatchEntry
from transformcache.patch.endian import (
    ByteOrder,
    EndianReader,
    EndianWriter,
    swap_float32,
    swap_float64,
    swap_int16,
    swap_int32,
    swap_int64,
    swap_uint16,
    swap_uint32,
    swap_uint64,
)
from transformcache.store.records import TransformRecord


def _entries() -> list[PatchEntry]:
    return [
        PatchEntry(0x1A2B3C4D, "Crate", (1.0, 2.5, -3.0), (0.0, 0.0, 0.0, 1.0), (1.0, 1.0, 1.0)),
        PatchEntry(7, "Ящик_ü", (0.25, 0.5, 0.75), (0.5, 0.5, 0.5, 0.5), (2.0, 2.0, 2.0), False),
        PatchEntry(-1, "", (0.0, 0.0, 0.0), (0.0, 1.0, 0.0, 0.0), (0.5, 1.0, 4.0)),
    ]


class TestSwap:
    def test_int_swaps(self):
        assert swap_uint16(0x1234) == 0x3412
        assert swap_uint32(0x12345678) == 0x78563412
        assert swap_uint64(0x0102030405060708) == 0x0807060504030201
        assert swap_int16(1) == 256
        assert swap_int32(-1) == -1
        assert swap_int64(swap_int64(-123456789)) == -123456789

    def test_float_swaps(self):
        assert swap_float32(b"\x01\x02\x03\x04") == b"\x04\x03\x02\x01"
        assert swap_float64(bytes(range(8))) == bytes(reversed(range(8)))

    def test_float_swap_rejects_wrong_width(self):
        with pytest.raises(CodecFailure):
            swap_float32(b"\x00\x01")


class TestEndianIO:
    @pytest.mark.parametrize("order", [ByteOrder.BIG, ByteOrder.LITTLE])
    def test_primitives_round_trip(self, order: ByteOrder):
        buf = io.BytesIO()
        w = EndianWriter(buf, order)
        w.write_int16(-2)
        w.write_uint16(65535)
        w.write_int32(-70000)
        w.write_uint32(4000000000)
        w.write_int64(-(1 << 62))
        w.write_uint64((1 << 64) - 1)
        w.write_float32(1.5)
        w.write_float64(-0.1)
        w.write_bool(True)
        w.write_string("héllo")

        r = EndianReader(io.BytesIO(buf.getvalue()), order)
        assert r.read_int16() == -2
        assert r.read_uint16() == 65535
        assert r.read_int32() == -70000
        assert r.read_uint32() == 4000000000
        assert r.read_int64() == -(1 << 62)
        assert r.read_uint64() == (1 << 64) - 1
        assert r.read_float32() == 1.5
        assert r.read_float64() == -0.1
        assert r.read_bool() is True
        assert r.read_string() == "héllo"

    def test_big_endian_layout(self):
        buf = io.BytesIO()
        EndianWriter(buf, ByteOrder.BIG).write_int32(1)
        assert buf.getvalue() == b"\x00\x00\x00\x01"

    def test_long_string_uses_multi_byte_length(self):
        buf = io.BytesIO()
        EndianWriter(buf).write_string("x" * 200)
        data = buf.getvalue()
        assert data[:2] == bytes([0xC8, 0x01])
        assert EndianReader(io.BytesIO(data)).read_string() == "x" * 200

    def test_short_read_raises(self):
        with pytest.raises(CodecFailure):
            EndianReader(io.BytesIO(b"\x00\x01")).read_int32()

    def test_out_of_range_value_raises(self):
        with pytest.raises(CodecFailure):
            EndianWriter(io.BytesIO()).write_int16(1 << 20)


class TestEncodeDecode:
    def test_round_trip(self):
        entries = _entries()
        result = codec.decode(codec.encode(entries))
        assert result.status is DecodeStatus.OK
        assert result.marker_found
        assert result.entries == entries

    def test_layout_starts_with_magic_and_version(self):
        data = codec.encode([])
        reader = EndianReader(io.BytesIO(data))
        assert reader.read_string() == "UnityFS"
        assert reader.read_int32() == 6
        assert reader.read_string() == "5.x.x"
        assert reader.read_string() == "TRANSFORM_CACHER_BUNDLE"
        assert reader.read_int32() == 0
        assert reader.read_string() == "SCENE_DATA"
        assert reader.read_string() == "MODIFIED_BY_TRANSFORM_CACHER"

    def test_empty_container_is_falsy_but_marked(self):
        result = codec.decode(codec.encode([]))
        assert not result
        assert result.marker_found

    def test_not_a_patch(self):
        result = codec.decode(b"# Custom scene file for Woods")
        assert result.status is DecodeStatus.NOT_PATCH
        assert not result.marker_found

    def test_empty_bytes(self):
        assert codec.decode(b"").status is DecodeStatus.NOT_PATCH

    def test_placeholder_is_foreign(self):
        result = codec.decode(codec.placeholder("Woods"))
        assert result.status is DecodeStatus.FOREIGN
        assert not result.marker_found

    def test_truncated_keeps_decoded_entries(self):
        entries = _entries()
        data = codec.encode(entries)
        trailer = len("SCENE_DATA") + 1 + len("MODIFIED_BY_TRANSFORM_CACHER") + 1
        first_entry_end = len(codec.encode(entries[:1])) - trailer
        result = codec.decode(data[: first_entry_end + 5])
        assert result.status is DecodeStatus.TRUNCATED
        assert result.marker_found
        assert result.entries == entries[:1]
        assert result.error

    def test_truncated_after_entries(self):
        entries = _entries()
        data = codec.encode(entries)
        # Drop the trailer strings only
        trailer = len("SCENE_DATA") + 1 + len("MODIFIED_BY_TRANSFORM_CACHER") + 1
        result = codec.decode(data[:-trailer])
        assert result.status is DecodeStatus.TRUNCATED
        assert result.entries == entries

    def test_encode_failure_yields_error_container(self):
        bad = PatchEntry(1 << 70, "Overflow", (0.0, 0.0, 0.0), (0.0, 0.0, 0.0, 1.0), (1.0, 1.0, 1.0))
        data = codec.encode([bad])
        reader = EndianReader(io.BytesIO(data))
        assert reader.read_string() == "UnityFS"
        assert reader.read_int32() == 0
        reader.read_string()
        assert reader.read_string() == "ERROR_BUNDLE"
        assert reader.read_string()
        assert codec.decode(data).status is DecodeStatus.FOREIGN

    def test_wrong_vector_size_yields_error_container(self):
        bad = PatchEntry(1, "Bad", (0.0, 0.0), (0.0, 0.0, 0.0, 1.0), (1.0, 1.0, 1.0))
        assert not codec.decode(codec.encode([bad])).marker_found


class TestRecordConversion:
    def test_entry_from_record(self):
        record = TransformRecord(
            unique_id="Woods_0000000A",
            object_name="Tree",
            hierarchy_path="World/Tree",
            position=(1.0, 2.0, 3.0),
            rotation=(0.0, 90.0, 0.0),
            scale=(1.0, 1.0, 1.0),
            is_destroyed=True,
            path_id="0000000A",
        )
        entry = codec.entry_from_record(record)
        assert entry.path_id == 10
        assert entry.name == "Tree"
        assert entry.active is False
        x, y, z, w = entry.rotation
        assert y == pytest.approx(0.70710678, abs=1e-6)
        assert w == pytest.approx(0.70710678, abs=1e-6)

    def test_unparsable_path_id_is_zero(self):
        record = TransformRecord(unique_id="S_1", object_name="A", hierarchy_path="A", path_id="xyz")
        assert codec.entry_from_record(record).path_id == 0

    def test_records_from_entries(self):
        entries = codec.entries_from_records(
            [
                TransformRecord(
                    unique_id="Woods_1",
                    object_name="Rock",
                    hierarchy_path="World/Rock",
                    position=(4.0, 5.0, 6.0),
                    rotation=(0.0, 45.0, 0.0),
                    path_id="00ABCDEF",
                )
            ]
        )
        records = codec.records_from_entries("Woods", entries)
        assert len(records) == 1
        rebuilt = records[0]
        assert rebuilt.object_name == "Rock"
        assert rebuilt.path_id == "00ABCDEF"
        assert rebuilt.unique_id == "Woods_00ABCDEF"
        assert rebuilt.position == (4.0, 5.0, 6.0)
        assert rebuilt.rotation[1] == pytest.approx(45.0, abs=1e-3)
        assert rebuilt.is_destroyed is False
