"""
Join payload codec tests.

Validates:
1. URL-safe base64 normalization and padding
2. Decoding into connection groups and entries
3. Structural rejection of non-join data
4. Round trip and verbatim preservation of unmodelled values
"""

import json

import msgpack
import pytest

from joinpatch import codec
from joinpatch.exceptions import DecodeError, InvalidPaddingError, MalformedBinaryError
from joinpatch.model import BinaryList, ByteBuffer, Integer, Opaque


def _b64(data: bytes) -> str:
    return codec.to_web_safe_base64(data)


class TestBase64:
    """Base64 normalization rules."""

    def test_normalize_replaces_url_safe_chars(self):
        assert codec.normalize_base64("ab-_") == "ab+/"

    def test_normalize_pads_to_multiple_of_four(self):
        assert codec.normalize_base64("abcdef") == "abcdef=="
        assert codec.normalize_base64("abcdefg") == "abcdefg="
        assert codec.normalize_base64("abcd") == "abcd"

    def test_web_safe_strips_padding(self):
        text = codec.to_web_safe_base64(b"\xfb\xff")
        assert text == "-_8"
        assert "=" not in text

    def test_decode_bytes_accepts_unpadded_url_safe(self):
        assert codec.decode_bytes("-_8") == b"\xfb\xff"

    def test_invalid_characters_raise_invalid_padding(self):
        with pytest.raises(InvalidPaddingError):
            codec.decode_bytes("!!!!")

    def test_impossible_length_raises_invalid_padding(self):
        # 5 data chars cannot be padded into valid base64
        with pytest.raises(InvalidPaddingError):
            codec.decode_bytes("abcde")

    def test_invalid_padding_is_a_decode_error(self):
        with pytest.raises(DecodeError) as exc_info:
            codec.decode("@@@@")
        assert exc_info.value.code == "invalid_padding"


class TestDecode:
    """Decoding join payloads."""

    def test_decode_single_entry(self, lan_payload):
        payload = codec.decode(lan_payload)

        groups = payload.connection_groups
        assert len(groups) == 1
        assert len(groups[0]) == 1
        entry = groups[0][0]
        assert bytes(entry.address.data) == bytes([192, 168, 1, 50])
        assert entry.port == 7777

    def test_decode_multiple_groups(self, make_payload):
        payload = codec.decode(make_payload([
            [[bytes([10, 0, 0, 5]), 7777], [bytes([8, 8, 8, 8]), 53]],
            [],
            [[bytes([172, 20, 1, 1]), 7778]],
        ]))

        assert [len(g) for g in payload.connection_groups] == [2, 0, 1]
        assert [e.port for e in payload.entries()] == [7777, 53, 7778]

    def test_unmodelled_slots_are_opaque(self, lan_payload):
        payload = codec.decode(lan_payload)

        assert isinstance(payload.slot(2), Opaque)
        assert payload.slot(2).raw == b"\xc0"
        assert isinstance(payload.slot(3), Integer)
        assert payload.slot(3).value == 12345
        assert isinstance(payload.slot(4), Opaque)

    def test_root_not_array(self):
        with pytest.raises(MalformedBinaryError):
            codec.decode(_b64(msgpack.packb(42)))

    def test_wrong_arity(self):
        with pytest.raises(MalformedBinaryError) as exc_info:
            codec.decode(_b64(msgpack.packb([[], 1])))
        assert exc_info.value.code == "malformed_binary"

    def test_groups_not_array(self):
        data = msgpack.packb(["nope", None, None, 1, None, 0])
        with pytest.raises(MalformedBinaryError):
            codec.decode(_b64(data))

    def test_entry_address_must_be_bin(self):
        data = msgpack.packb(
            [[[["192.168.1.50", 7777]]], None, None, 1, None, 0],
            use_bin_type=True,
        )
        with pytest.raises(MalformedBinaryError):
            codec.decode(_b64(data))

    def test_entry_port_must_be_int(self):
        data = msgpack.packb(
            [[[[b"\xc0\xa8\x01\x32", "7777"]]], None, None, 1, None, 0],
            use_bin_type=True,
        )
        with pytest.raises(MalformedBinaryError):
            codec.decode(_b64(data))

    def test_truncated_data(self, lan_payload):
        data = codec.decode_bytes(lan_payload)
        with pytest.raises(MalformedBinaryError):
            codec.decode(_b64(data[:-3]))

    def test_trailing_bytes(self, lan_payload):
        data = codec.decode_bytes(lan_payload)
        with pytest.raises(MalformedBinaryError) as exc_info:
            codec.decode(_b64(data + b"\x00"))
        assert exc_info.value.offset == len(data)

    def test_empty_payload(self):
        with pytest.raises(MalformedBinaryError):
            codec.decode("")


class TestRoundTrip:
    """Encoding back to base64."""

    def test_decode_encode_decode(self, make_payload):
        text = make_payload([
            [[bytes([192, 168, 1, 50]), 7777], [bytes([1, 2, 3, 4]), 65535]],
            [[bytes([10, 1, 2, 3]), 27015, "extra"]],
        ])

        first = codec.decode(text)
        second = codec.decode(codec.encode(first))
        assert second == first

    def test_canonical_payload_reencodes_identically(self, lan_payload):
        assert codec.encode(codec.decode(lan_payload)) == lan_payload

    def test_opaque_bytes_preserved_verbatim(self):
        groups = msgpack.packb([[[b"\xc0\xa8\x01\x32", 7777]]], use_bin_type=True)
        # {"k": 1} with a non-canonical uint16 value, and a float32
        odd_map = b"\x81\xa1k\xcd\x00\x01"
        float32 = b"\xca\x3f\x80\x00\x00"
        data = (b"\x96" + groups + msgpack.packb([]) + odd_map
                + msgpack.packb(12345) + float32 + msgpack.packb(0))

        payload = codec.decode(_b64(data))
        assert payload.slot(2) == Opaque(odd_map)
        assert payload.slot(4) == Opaque(float32)
        assert codec.decode_bytes(codec.encode(payload)) == data

    def test_write_value_tree(self):
        tree = BinaryList([ByteBuffer(b"\x0a\x00\x00\x01"), Integer(-5), Opaque(b"\xc3")])
        data = codec.write_value(tree)
        assert data == b"\x93\xc4\x04\x0a\x00\x00\x01\xfb\xc3"
        assert codec.read_value(data) == tree


class TestJsonDump:
    """Human-readable dump."""

    def test_payload_to_dict(self, lan_payload):
        view = codec.payload_to_dict(codec.decode(lan_payload))

        assert view["connection_groups"] == [[{"address": "192.168.1.50", "port": 7777}]]
        assert len(view["slots"]) == 5
        assert view["slots"][2] == 12345

    def test_dump_to_json(self, lan_payload, tmp_path):
        path = codec.dump_to_json(codec.decode(lan_payload), tmp_path / "join.json")

        data = json.loads(path.read_text())
        assert data["connection_groups"][0][0]["port"] == 7777
