# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Binary Canonical Serialization (BCS) for entry-function payloads.

Every byte that leaves this package is written through the Serializer here, and
every ABI table entry is read back through the Deserializer. The layout rules are:

- unsigned integers are little-endian at their bit width (u8 is 1 byte, u256 is 32)
- booleans are a single byte, 0 or 1
- sequences, byte strings and strings carry a ULEB128 length prefix
- structs are the concatenation of their fields in declaration order, with no
  prefix and no field names, so decoding one needs its schema

Learn more at https://github.com/diem/bcs

Examples:
    Encoding the amount argument of a coin transfer::

        ser = Serializer()
        ser.u64(500)
        ser.output()  # b"\\xf4\\x01\\x00\\x00\\x00\\x00\\x00\\x00"

    Reading it back::

        Deserializer(b"\\xf4\\x01\\x00\\x00\\x00\\x00\\x00\\x00").u64()  # 500
"""

from __future__ import annotations

import io
import typing
import unittest
from typing import Dict, List

from typing_extensions import Protocol

MAX_U8 = 2**8 - 1
MAX_U16 = 2**16 - 1
MAX_U32 = 2**32 - 1
MAX_U64 = 2**64 - 1
MAX_U128 = 2**128 - 1
MAX_U256 = 2**256 - 1


class ValueOutOfRange(Exception):
    """A numeric value does not fit the declared unsigned width."""

    value: int
    kind: str

    def __init__(self, value: int, kind: str):
        super().__init__(f"Cannot encode {value} into {kind}")
        self.value = value
        self.kind = kind


class DeserializationError(Exception):
    """The input bytes do not decode under the requested layout."""


class Deserializable(Protocol):
    """Protocol for types that can be read from a BCS byte stream.

    Implementors provide a static `deserialize` and inherit `from_bytes`.
    """

    @classmethod
    def from_bytes(cls, indata: bytes) -> Deserializable:
        """Decode an instance from bytes, requiring every byte to be consumed."""
        der = Deserializer(indata)
        value = der.struct(cls)
        if der.remaining() != 0:
            raise DeserializationError(
                f"{der.remaining()} trailing bytes after {cls.__name__}"
            )
        return value

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Deserializable:
        ...


class Serializable(Protocol):
    """Protocol for types that can be written to a BCS byte stream.

    Implementors provide `serialize` and inherit `to_bytes`.
    """

    def to_bytes(self) -> bytes:
        ser = Serializer()
        ser.struct(self)
        return ser.output()

    def serialize(self, serializer: Serializer):
        ...


class Deserializer:
    """Reads BCS values from a byte buffer, front to back.

    Each method consumes exactly the bytes of one value and raises
    DeserializationError when the buffer cannot satisfy it.
    """

    _input: io.BytesIO
    _length: int

    def __init__(self, data: bytes):
        self._length = len(data)
        self._input = io.BytesIO(data)

    def remaining(self) -> int:
        return self._length - self._input.tell()

    def bool(self) -> bool:
        value = self._read_int(1)
        if value == 0:
            return False
        elif value == 1:
            return True
        raise DeserializationError(f"Unexpected boolean value: {value}")

    def to_bytes(self) -> bytes:
        """Read a ULEB128 length followed by that many raw bytes."""
        return self._read(self.uleb128())

    def fixed_bytes(self, length: int) -> bytes:
        return self._read(length)

    def map(
        self,
        key_decoder: typing.Callable[[Deserializer], typing.Any],
        value_decoder: typing.Callable[[Deserializer], typing.Any],
    ) -> Dict[typing.Any, typing.Any]:
        length = self.uleb128()
        values: Dict = {}
        while len(values) < length:
            key = key_decoder(self)
            values[key] = value_decoder(self)
        return values

    def sequence(
        self,
        value_decoder: typing.Callable[[Deserializer], typing.Any],
    ) -> List[typing.Any]:
        """Read a ULEB128 element count followed by each element.

        Examples:
            Reading the argument names of an ABI::

                names = der.sequence(Deserializer.str)
        """
        length = self.uleb128()
        values: List = []
        while len(values) < length:
            values.append(value_decoder(self))
        return values

    def str(self) -> str:
        raw = self.to_bytes()
        try:
            return raw.decode()
        except UnicodeDecodeError as e:
            raise DeserializationError(f"Invalid UTF-8 string: {raw!r}") from e

    def struct(self, struct: typing.Any) -> typing.Any:
        return struct.deserialize(self)

    def u8(self) -> int:
        return self._read_int(1)

    def u16(self) -> int:
        return self._read_int(2)

    def u32(self) -> int:
        return self._read_int(4)

    def u64(self) -> int:
        return self._read_int(8)

    def u128(self) -> int:
        return self._read_int(16)

    def u256(self) -> int:
        return self._read_int(32)

    def uleb128(self) -> int:
        """Read an unsigned LEB128 value; BCS caps these at u32."""
        value = 0
        shift = 0

        while value <= MAX_U32:
            byte = self._read_int(1)
            value |= (byte & 0x7F) << shift
            if byte & 0x80 == 0:
                break
            shift += 7

        if value > MAX_U32:
            raise DeserializationError("Unexpectedly large uleb128 value")

        return value

    def _read(self, length: int) -> bytes:
        value = self._input.read(length)
        if value is None or len(value) < length:
            actual_length = 0 if value is None else len(value)
            raise DeserializationError(
                f"Unexpected end of input. Requested: {length}, found: {actual_length}"
            )
        return value

    def _read_int(self, length: int) -> int:
        return int.from_bytes(self._read(length), byteorder="little", signed=False)


class Serializer:
    """Accumulates BCS-encoded values into a byte buffer.

    Integer writers check the value against their width before writing, so a
    Serializer never emits a truncated or wrapped number.

    Examples:
        Building the argument bytes for ``coin::transfer``::

            ser = Serializer()
            ser.struct(recipient)  # 32-byte address
            ser.u64(1000)
            ser.output()
    """

    _output: io.BytesIO

    def __init__(self):
        self._output = io.BytesIO()

    def output(self) -> bytes:
        return self._output.getvalue()

    def bool(self, value: bool):
        self._write_int(int(value), 1)

    def to_bytes(self, value: bytes):
        """Write a ULEB128 length followed by the raw bytes."""
        self.uleb128(len(value))
        self._output.write(value)

    def fixed_bytes(self, value):
        self._output.write(value)

    def map(
        self,
        values: typing.Dict[typing.Any, typing.Any],
        key_encoder: typing.Callable[[Serializer, typing.Any], None],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        """Write a map with its entries ordered by the encoded key bytes."""
        encoded_values = []
        for key, value in values.items():
            encoded_values.append(
                (encoder(key, key_encoder), encoder(value, value_encoder))
            )
        encoded_values.sort(key=lambda item: item[0])

        self.uleb128(len(encoded_values))
        for key, value in encoded_values:
            self.fixed_bytes(key)
            self.fixed_bytes(value)

    @staticmethod
    def sequence_serializer(
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        """Bind an element encoder into a reusable sequence encoder.

        The result has the same ``(serializer, value)`` shape as the other
        Serializer methods, which lets vector encoders nest.
        """
        return lambda self, values: self.sequence(values, value_encoder)

    def sequence(
        self,
        values: typing.Sequence[typing.Any],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        self.uleb128(len(values))
        for value in values:
            self.fixed_bytes(encoder(value, value_encoder))

    def str(self, value: str):
        self.to_bytes(value.encode())

    def struct(self, value: typing.Any):
        value.serialize(self)

    def u8(self, value: int):
        self._write_uint(value, 1, MAX_U8, "u8")

    def u16(self, value: int):
        self._write_uint(value, 2, MAX_U16, "u16")

    def u32(self, value: int):
        self._write_uint(value, 4, MAX_U32, "u32")

    def u64(self, value: int):
        self._write_uint(value, 8, MAX_U64, "u64")

    def u128(self, value: int):
        self._write_uint(value, 16, MAX_U128, "u128")

    def u256(self, value: int):
        self._write_uint(value, 32, MAX_U256, "u256")

    def uleb128(self, value: int):
        if value < 0 or value > MAX_U32:
            raise ValueOutOfRange(value, "uleb128")

        while value >= 0x80:
            # Low 7 bits with the continuation bit set.
            self._write_int((value & 0x7F) | 0x80, 1)
            value >>= 7

        self._write_int(value & 0x7F, 1)

    def _write_uint(self, value: int, length: int, maximum: int, kind: str):
        if value < 0 or value > maximum:
            raise ValueOutOfRange(value, kind)
        self._write_int(value, length)

    def _write_int(self, value: int, length: int):
        self._output.write(value.to_bytes(length, "little", signed=False))


def encoder(
    value: typing.Any, encoder: typing.Callable[[Serializer, typing.Any], typing.Any]
) -> bytes:
    """Encode one value with a Serializer method and return its bytes.

    Examples:
        ``encoder(500, Serializer.u64)`` returns ``b"\\xf4\\x01" + b"\\x00" * 6``.
    """
    ser = Serializer()
    encoder(ser, value)
    return ser.output()


class Test(unittest.TestCase):
    def test_u64_layout(self):
        self.assertEqual(encoder(500, Serializer.u64), bytes([244, 1, 0, 0, 0, 0, 0, 0]))

    def test_deterministic(self):
        first = encoder([b"ab", b"c"], Serializer.sequence_serializer(Serializer.to_bytes))
        second = encoder([b"ab", b"c"], Serializer.sequence_serializer(Serializer.to_bytes))
        self.assertEqual(first, second)
        self.assertEqual(first, b"\x02\x02ab\x01c")

    def test_integer_widths(self):
        self.assertEqual(encoder(0xAB, Serializer.u8), b"\xab")
        self.assertEqual(encoder(0x0102, Serializer.u16), b"\x02\x01")
        self.assertEqual(encoder(1, Serializer.u32), b"\x01\x00\x00\x00")
        self.assertEqual(len(encoder(1, Serializer.u128)), 16)
        self.assertEqual(encoder(MAX_U256, Serializer.u256), b"\xff" * 32)

    def test_bool(self):
        self.assertEqual(encoder(True, Serializer.bool), b"\x01")
        self.assertEqual(encoder(False, Serializer.bool), b"\x00")
        with self.assertRaises(DeserializationError):
            Deserializer(b"\x20").bool()

    def test_out_of_range(self):
        with self.assertRaises(ValueOutOfRange):
            encoder(MAX_U64 + 1, Serializer.u64)
        with self.assertRaises(ValueOutOfRange) as ctx:
            encoder(-1, Serializer.u8)
        self.assertEqual(ctx.exception.kind, "u8")
        self.assertEqual(ctx.exception.value, -1)
        with self.assertRaises(ValueOutOfRange):
            encoder(MAX_U32 + 1, Serializer.uleb128)

    def test_uleb128(self):
        self.assertEqual(encoder(0, Serializer.uleb128), b"\x00")
        self.assertEqual(encoder(127, Serializer.uleb128), b"\x7f")
        self.assertEqual(encoder(128, Serializer.uleb128), b"\x80\x01")
        self.assertEqual(encoder(16384, Serializer.uleb128), b"\x80\x80\x01")
        self.assertEqual(Deserializer(b"\x80\x80\x01").uleb128(), 16384)

    def test_map_sorted_by_key_bytes(self):
        in_value = {"b": 2, "a": 1}
        out = encoder(
            in_value,
            lambda ser, v: ser.map(v, Serializer.str, Serializer.u8),
        )
        self.assertEqual(out, b"\x02\x01a\x01\x01b\x02")
        der = Deserializer(out)
        self.assertEqual(der.map(Deserializer.str, Deserializer.u8), in_value)

    def test_sequence_of_strings(self):
        in_value = ["a", "abc", "def", "ghi"]
        der = Deserializer(encoder(in_value, Serializer.sequence_serializer(Serializer.str)))
        self.assertEqual(der.sequence(Deserializer.str), in_value)
        self.assertEqual(der.remaining(), 0)

    def test_truncated_input(self):
        with self.assertRaises(DeserializationError):
            Deserializer(b"\x01\x02").u64()
        with self.assertRaises(DeserializationError):
            Deserializer(b"\x05ab").str()

    def test_invalid_utf8(self):
        with self.assertRaises(DeserializationError):
            Deserializer(b"\x01\xff").str()


if __name__ == "__main__":
    unittest.main()
