# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Fixed-width account addresses.

Addresses are 32 bytes on the wire and render per AIP-40: the special addresses
0x0 through 0xf use the SHORT form, everything else is 0x followed by 64
lowercase hex characters. Since every address has exactly one rendering, an
address embedded in a type tag string never produces two spellings of the same
type.

Examples:
    Parsing and rendering::

        AccountAddress.from_str("0x1")                 # strict AIP-40
        AccountAddress.from_str_relaxed("0x01")        # padded, prefix optional
        str(AccountAddress.from_str_relaxed("0x01"))   # "0x1"
"""

from __future__ import annotations

import string
import unittest

from .bcs import Deserializer, Serializer, encoder

HEX_DIGITS = frozenset(string.hexdigits)


class ParseAddressError(Exception):
    """An address string or byte sequence is not a valid 32-byte address."""


class AccountAddress:
    """A 32-byte account identifier.

    Attributes:
        address: The raw address bytes.
        LENGTH: Required byte length of every address (32).
    """

    address: bytes
    LENGTH: int = 32

    def __init__(self, address: bytes):
        if len(address) != AccountAddress.LENGTH:
            raise ParseAddressError(
                f"Expected address of length {AccountAddress.LENGTH}, got {len(address)}"
            )
        self.address = address

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AccountAddress):
            return NotImplemented
        return self.address == other.address

    def __hash__(self) -> int:
        return hash(self.address)

    def __str__(self):
        """Render per AIP-40, SHORT form for special addresses only.

        See Also:
            AIP-40 standard: https://github.com/aptos-foundation/AIPs/blob/main/aips/aip-40.md
        """
        suffix = self.address.hex()
        if self.is_special():
            suffix = suffix.lstrip("0") or "0"
        return f"0x{suffix}"

    def __repr__(self):
        return self.__str__()

    def is_special(self):
        """True for 0x0 through 0xf, i.e. 31 zero bytes and a last byte below 16."""
        return all(b == 0 for b in self.address[:-1]) and self.address[-1] < 0b10000

    @staticmethod
    def from_str(address: str) -> AccountAddress:
        """Parse an address under strict AIP-40 rules.

        Accepts ``0x`` + 64 hex characters, or ``0x`` + one hex character for
        the special addresses.

        Raises:
            ParseAddressError: On a missing prefix, padded SHORT form, or SHORT
                form used for a non-special address.
        """
        if not address.startswith("0x"):
            raise ParseAddressError("Hex string must start with a leading 0x.")

        out = AccountAddress.from_str_relaxed(address)

        if len(address) != AccountAddress.LENGTH * 2 + 2:
            if not out.is_special():
                raise ParseAddressError(
                    "The given hex string is not a special address, it must be "
                    "represented as 0x + 64 chars."
                )
            # 0x + one hex char is the only SHORT form allowed.
            if len(address) != 3:
                raise ParseAddressError(
                    "The given hex string is a special address not in LONG form, "
                    "it must be 0x0 to 0xf without padding zeroes."
                )

        return out

    @staticmethod
    def from_str_relaxed(address: str) -> AccountAddress:
        """Parse 1 to 64 hex characters, with or without ``0x``, left-padding with zeros.

        Raises:
            ParseAddressError: If the string is empty, too long, or not hex.
        """
        addr = address[2:] if address[0:2] == "0x" else address

        if len(addr) < 1:
            raise ParseAddressError(
                "Hex string is too short, must be 1 to 64 chars long, excluding the "
                "leading 0x."
            )
        if len(addr) > AccountAddress.LENGTH * 2:
            raise ParseAddressError(
                "Hex string is too long, must be 1 to 64 chars long, excluding the "
                "leading 0x."
            )
        if not all(c in HEX_DIGITS for c in addr):
            raise ParseAddressError(f"Hex string contains non-hex characters: {address}")

        return AccountAddress(bytes.fromhex(addr.rjust(AccountAddress.LENGTH * 2, "0")))

    @staticmethod
    def deserialize(deserializer: Deserializer) -> AccountAddress:
        return AccountAddress(deserializer.fixed_bytes(AccountAddress.LENGTH))

    def serialize(self, serializer: Serializer):
        serializer.fixed_bytes(self.address)


class Test(unittest.TestCase):
    OTHER = "ca843279e3427144cead5e4d5999a3d0ca843279e3427144cead5e4d5999a3d0"

    def test_special_render_short(self):
        self.assertEqual(str(AccountAddress.from_str_relaxed("0x" + "0" * 64)), "0x0")
        self.assertEqual(str(AccountAddress.from_str_relaxed("0x" + "0" * 63 + "1")), "0x1")
        self.assertEqual(str(AccountAddress.from_str_relaxed("d")), "0xd")
        self.assertEqual(str(AccountAddress.from_str_relaxed("0x0f")), "0xf")

    def test_other_render_long(self):
        ten = "0x" + "0" * 62 + "10"
        self.assertEqual(str(AccountAddress.from_str_relaxed("0x10")), ten)
        self.assertEqual(str(AccountAddress.from_str_relaxed(self.OTHER)), f"0x{self.OTHER}")
        leading = "0f" + "0" * 62
        self.assertEqual(str(AccountAddress.from_str_relaxed(leading)), f"0x{leading}")

    def test_render_lowercase(self):
        upper = AccountAddress.from_str_relaxed("0x" + self.OTHER.upper())
        self.assertEqual(str(upper), f"0x{self.OTHER}")

    def test_from_str_strict(self):
        self.assertEqual(AccountAddress.from_str("0xf"), AccountAddress.from_str_relaxed("f"))
        self.assertRaises(ParseAddressError, AccountAddress.from_str, self.OTHER)
        self.assertRaises(ParseAddressError, AccountAddress.from_str, "0x0f")
        self.assertRaises(ParseAddressError, AccountAddress.from_str, "0x10")

    def test_relaxed_rejects(self):
        self.assertRaises(ParseAddressError, AccountAddress.from_str_relaxed, "0x")
        self.assertRaises(ParseAddressError, AccountAddress.from_str_relaxed, "0x" + "1" * 65)
        self.assertRaises(ParseAddressError, AccountAddress.from_str_relaxed, "0xzz")
        self.assertRaises(ParseAddressError, AccountAddress.from_str_relaxed, "0x 1")

    def test_wrong_length_bytes(self):
        self.assertRaises(ParseAddressError, AccountAddress, b"\x01" * 31)

    def test_serialize_fixed_width(self):
        out = encoder(AccountAddress.from_str("0x1"), Serializer.struct)
        self.assertEqual(out, b"\x00" * 31 + b"\x01")
        self.assertEqual(Deserializer(out).struct(AccountAddress), AccountAddress.from_str("0x1"))


if __name__ == "__main__":
    unittest.main()
