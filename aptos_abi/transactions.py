# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Entry-function payloads: the call description a node accepts for execution.

An EntryFunction names a published Move function and carries its concrete type
arguments plus one already-encoded byte string per declared parameter, in
declaration order. TransactionPayload is the enum a signed transaction embeds;
only the entry-function variant is produced here.
"""

from __future__ import annotations

import typing
import unittest
from typing import List

from .account_address import AccountAddress, ParseAddressError
from .bcs import (
    Deserializable,
    DeserializationError,
    Deserializer,
    Serializable,
    Serializer,
    encoder,
)
from .type_tag import IDENTIFIER, StructTag, TypeTag


class ModuleId(Deserializable, Serializable):
    """A published module, ``address::name``."""

    address: AccountAddress
    name: str

    def __init__(self, address: AccountAddress, name: str):
        self.address = address
        self.name = name

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ModuleId):
            return NotImplemented
        return self.address == other.address and self.name == other.name

    def __hash__(self) -> int:
        return hash((self.address, self.name))

    def __str__(self) -> str:
        return f"{self.address}::{self.name}"

    def __repr__(self):
        return self.__str__()

    @staticmethod
    def from_str(module_id: str) -> ModuleId:
        """Parse ``0x1::coin``; the address may be in any relaxed form.

        Raises:
            ValueError: If the string is not ``address::identifier``.
        """
        split = module_id.split("::")
        if len(split) != 2 or not IDENTIFIER.fullmatch(split[1]):
            raise ValueError(f"Invalid module id {module_id!r}, expected address::name")
        try:
            address = AccountAddress.from_str_relaxed(split[0])
        except ParseAddressError as e:
            raise ValueError(f"Invalid module id {module_id!r}: {e}") from e
        return ModuleId(address, split[1])

    @staticmethod
    def deserialize(deserializer: Deserializer) -> ModuleId:
        address = deserializer.struct(AccountAddress)
        name = deserializer.str()
        return ModuleId(address, name)

    def serialize(self, serializer: Serializer):
        serializer.struct(self.address)
        serializer.str(self.name)


class TransactionArgument:
    """A value paired with the Serializer method that encodes it.

    Examples:
        ``TransactionArgument(1000, Serializer.u64).encode()``
    """

    value: typing.Any
    encoder: typing.Callable[[Serializer, typing.Any], None]

    def __init__(
        self,
        value: typing.Any,
        encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        self.value = value
        self.encoder = encoder

    def encode(self) -> bytes:
        return encoder(self.value, self.encoder)


class EntryFunction(Deserializable, Serializable):
    """A call to ``module::function<ty_args>(args)``.

    Attributes:
        module: The module that declares the function.
        function: The function name.
        ty_args: Concrete type arguments, one per declared type parameter.
        args: Encoded arguments, one per declared non-signer parameter.
    """

    module: ModuleId
    function: str
    ty_args: List[TypeTag]
    args: List[bytes]

    def __init__(
        self, module: ModuleId, function: str, ty_args: List[TypeTag], args: List[bytes]
    ):
        self.module = module
        self.function = function
        self.ty_args = ty_args
        self.args = args

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EntryFunction):
            return NotImplemented
        return (
            self.module == other.module
            and self.function == other.function
            and self.ty_args == other.ty_args
            and self.args == other.args
        )

    def __str__(self):
        type_args = ""
        if self.ty_args:
            type_args = "<" + ", ".join(str(tag) for tag in self.ty_args) + ">"
        args = ", ".join(f"0x{arg.hex()}" for arg in self.args)
        return f"{self.module}::{self.function}{type_args}({args})"

    def __repr__(self):
        return self.__str__()

    @staticmethod
    def natural(
        module: str,
        function: str,
        ty_args: List[TypeTag],
        args: List[TransactionArgument],
    ) -> EntryFunction:
        """Build from a ``"0x1::coin"`` module string and pre-typed arguments.

        No ABI is consulted: the caller picks each argument's encoder.
        """
        module_id = ModuleId.from_str(module)
        return EntryFunction(module_id, function, ty_args, [arg.encode() for arg in args])

    @staticmethod
    def deserialize(deserializer: Deserializer) -> EntryFunction:
        module = ModuleId.deserialize(deserializer)
        function = deserializer.str()
        ty_args = deserializer.sequence(TypeTag.deserialize)
        args = deserializer.sequence(Deserializer.to_bytes)
        return EntryFunction(module, function, ty_args, args)

    def serialize(self, serializer: Serializer):
        self.module.serialize(serializer)
        serializer.str(self.function)
        serializer.sequence(self.ty_args, Serializer.struct)
        serializer.sequence(self.args, Serializer.to_bytes)


class TransactionPayload(Deserializable, Serializable):
    """The payload enum embedded in a raw transaction.

    Variant numbers follow the chain's layout; only ENTRY_FUNCTION is built
    or decoded here.
    """

    SCRIPT: int = 0
    MODULE_BUNDLE: int = 1
    ENTRY_FUNCTION: int = 2
    MULTISIG: int = 3

    variant: int
    value: typing.Any

    def __init__(self, payload: typing.Any):
        if isinstance(payload, EntryFunction):
            self.variant = TransactionPayload.ENTRY_FUNCTION
        else:
            raise TypeError(f"Unsupported payload type: {type(payload).__name__}")
        self.value = payload

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TransactionPayload):
            return NotImplemented
        return self.variant == other.variant and self.value == other.value

    def __str__(self):
        return self.value.__str__()

    def __repr__(self):
        return self.__str__()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> TransactionPayload:
        variant = deserializer.uleb128()
        if variant == TransactionPayload.ENTRY_FUNCTION:
            return TransactionPayload(EntryFunction.deserialize(deserializer))
        raise DeserializationError(f"Unsupported payload variant: {variant}")

    def serialize(self, serializer: Serializer):
        serializer.uleb128(self.variant)
        self.value.serialize(serializer)


class Test(unittest.TestCase):
    def test_module_id(self):
        module = ModuleId.from_str("0x01::coin")
        self.assertEqual(str(module), "0x1::coin")
        self.assertEqual(module.to_bytes(), b"\x00" * 31 + b"\x01" + b"\x04coin")
        self.assertRaises(ValueError, ModuleId.from_str, "0x1::coin::transfer")
        self.assertRaises(ValueError, ModuleId.from_str, "0xqq::coin")
        self.assertRaises(ValueError, ModuleId.from_str, "0x1::9coin")
        self.assertRaises(ValueError, ModuleId.from_str, "0x1::coin\n")

    def test_entry_function_layout(self):
        coin = TypeTag(StructTag.from_str("0x1::aptos_coin::AptosCoin"))
        recipient = AccountAddress.from_str("0x2")
        entry_function = EntryFunction.natural(
            "0x1::coin",
            "transfer",
            [coin],
            [
                TransactionArgument(recipient, Serializer.struct),
                TransactionArgument(1000, Serializer.u64),
            ],
        )
        self.assertEqual(entry_function.args[1], b"\xe8\x03" + b"\x00" * 6)

        payload = TransactionPayload(entry_function)
        out = payload.to_bytes()
        expected = (
            b"\x02"
            + ModuleId.from_str("0x1::coin").to_bytes()
            + b"\x08transfer"
            + b"\x01"
            + coin.to_bytes()
            + b"\x02"
            + b"\x20"
            + recipient.address
            + b"\x08"
            + b"\xe8\x03"
            + b"\x00" * 6
        )
        self.assertEqual(out, expected)
        self.assertEqual(TransactionPayload.from_bytes(out), payload)

    def test_unsupported_payload(self):
        self.assertRaises(TypeError, TransactionPayload, b"script")
        with self.assertRaises(DeserializationError):
            TransactionPayload.from_bytes(b"\x00")

    def test_str(self):
        entry_function = EntryFunction.natural(
            "0x1::aptos_account",
            "transfer",
            [],
            [TransactionArgument(1, Serializer.u8)],
        )
        self.assertEqual(str(entry_function), "0x1::aptos_account::transfer(0x01)")


if __name__ == "__main__":
    unittest.main()
