# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
ABI-driven construction of entry-function payloads.

The builder never guesses how to encode an argument: it looks up the declared
signature, binds the declared type parameters to the caller's type arguments,
and encodes each value by the resulting concrete type, strictly in declaration
order.

Accepted Python values per declared type:

=============================  ===============================================
``bool``                       ``bool``
``u8`` .. ``u256``             ``int`` or a decimal digit string
``address``                    ``AccountAddress`` or a hex string
``vector<u8>``                 ``bytes``, ``bytearray`` or ``str`` (UTF-8)
``vector<T>``                  ``list`` or ``tuple`` of values for ``T``
``0x1::string::String``        ``str``
``0x1::object::Object<T>``     same as ``address``
``0x1::option::Option<T>``     ``None`` or a value for ``T``
=============================  ===============================================

Examples:
    Transferring coins::

        builder = TransactionBuilderABI(AbiRegistry.from_hex(COIN_ABIS))
        payload = builder.build_transaction_payload(
            "0x1::coin",
            "transfer",
            ["0x1::aptos_coin::AptosCoin"],
            ["0xb0b", 1000],
        )
"""

from __future__ import annotations

import logging
import typing
import unittest
from typing import List, Sequence, Union

from .abi import AbiRegistry, EntryABI, UnknownFunction, entry_function_abi
from .account_address import AccountAddress, ParseAddressError
from .bcs import Serializer, ValueOutOfRange, encoder
from .transactions import EntryFunction, ModuleId, TransactionPayload
from .type_tag import (
    AccountAddressTag,
    BoolTag,
    GenericArityMismatch,
    MalformedTypeTag,
    SignerTag,
    StructTag,
    TypeTag,
    U8Tag,
    VectorTag,
    parse_type_tag,
)

INTEGER_ENCODERS = {
    TypeTag.U8: Serializer.u8,
    TypeTag.U16: Serializer.u16,
    TypeTag.U32: Serializer.u32,
    TypeTag.U64: Serializer.u64,
    TypeTag.U128: Serializer.u128,
    TypeTag.U256: Serializer.u256,
}

STRING_STRUCT = "0x1::string::String"
OBJECT_STRUCT = "0x1::object::Object"
OPTION_STRUCT = "0x1::option::Option"


class ArgumentTypeMismatch(Exception):
    """A caller-supplied value does not have the shape its declared type needs."""

    position: int
    expected: str
    actual: str

    def __init__(self, position: int, expected: str, actual: str):
        super().__init__(f"Argument {position}: expected {expected}, got {actual}")
        self.position = position
        self.expected = expected
        self.actual = actual


class TransactionBuilderABI:
    """Builds entry-function payloads from the signatures in an AbiRegistry.

    The builder keeps no state besides the registry and can be shared
    between threads.
    """

    registry: AbiRegistry

    def __init__(self, registry: AbiRegistry):
        self.registry = registry

    def build_entry_function(
        self,
        module: Union[ModuleId, str],
        function: str,
        type_args: Sequence[Union[TypeTag, str]],
        args: Sequence[typing.Any],
    ) -> EntryFunction:
        """Encode a call to ``module::function<type_args>(args)``.

        Parameters declared as ``signer`` are provided by the transaction
        sender and take no value in ``args``.

        Raises:
            UnknownFunction: If no ABI is registered for the function or the
                module is not ``address::name``.
            GenericArityMismatch: If the number of type arguments is wrong.
            ArgumentTypeMismatch: If the number of arguments is wrong or a value
                has the wrong shape for its declared type.
            ValueOutOfRange: If a number does not fit its declared width.
            MalformedTypeTag: If a type argument does not parse or is not concrete.
        """
        if isinstance(module, ModuleId):
            module_id = module
        else:
            try:
                module_id = ModuleId.from_str(module)
            except ValueError as e:
                raise UnknownFunction(module, function) from e
        abi = self.registry.lookup(module_id.address, module_id.name, function)
        if abi is None:
            raise UnknownFunction(str(module_id), function)

        ty_args = [
            type_arg if isinstance(type_arg, TypeTag) else parse_type_tag(type_arg)
            for type_arg in type_args
        ]
        if len(ty_args) != abi.generic_arity:
            raise GenericArityMismatch(
                f"{abi.module}::{abi.name} takes {abi.generic_arity} type arguments, "
                f"got {len(ty_args)}",
                abi.generic_arity,
                len(ty_args),
            )
        for ty_arg in ty_args:
            if ty_arg.is_generic():
                raise MalformedTypeTag(str(ty_arg), "type arguments must be concrete")

        params = [arg for arg in abi.args if not isinstance(arg.type_tag.value, SignerTag)]
        if len(args) != len(params):
            raise ArgumentTypeMismatch(
                min(len(args), len(params)),
                f"{len(params)} arguments",
                f"{len(args)} arguments",
            )

        encoded = [
            encode_argument(position, param.type_tag.substitute(ty_args), value)
            for position, (param, value) in enumerate(zip(params, args))
        ]
        logging.debug(f"Built {module_id}::{function} with {len(encoded)} arguments")
        return EntryFunction(module_id, function, ty_args, encoded)

    def build_transaction_payload(
        self,
        module: Union[ModuleId, str],
        function: str,
        type_args: Sequence[Union[TypeTag, str]],
        args: Sequence[typing.Any],
    ) -> TransactionPayload:
        return TransactionPayload(
            self.build_entry_function(module, function, type_args, args)
        )


def encode_argument(position: int, type_tag: TypeTag, value: typing.Any) -> bytes:
    """BCS-encode one argument value as ``type_tag``; ``position`` labels errors."""
    ser = Serializer()
    _serialize_argument(ser, position, type_tag, value)
    return ser.output()


def _serialize_argument(
    ser: Serializer, position: int, type_tag: TypeTag, value: typing.Any
):
    tag = type_tag.value

    if isinstance(tag, BoolTag):
        if not isinstance(value, bool):
            raise ArgumentTypeMismatch(position, str(type_tag), _kind(value))
        ser.bool(value)
    elif type_tag.variant() in INTEGER_ENCODERS:
        INTEGER_ENCODERS[type_tag.variant()](ser, _as_integer(position, type_tag, value))
    elif isinstance(tag, AccountAddressTag):
        ser.struct(_as_address(position, type_tag, value))
    elif isinstance(tag, VectorTag):
        _serialize_vector(ser, position, type_tag, value)
    elif isinstance(tag, StructTag):
        _serialize_struct(ser, position, type_tag, value)
    else:
        # signer values come from the sender; placeholders are substituted earlier.
        raise ArgumentTypeMismatch(position, str(type_tag), _kind(value))


def _serialize_vector(ser: Serializer, position: int, type_tag: TypeTag, value: typing.Any):
    element = type_tag.value.element
    if isinstance(element.value, U8Tag) and isinstance(value, (bytes, bytearray, str)):
        ser.to_bytes(value.encode() if isinstance(value, str) else bytes(value))
    elif isinstance(value, (list, tuple)):
        ser.uleb128(len(value))
        for item in value:
            _serialize_argument(ser, position, element, item)
    else:
        raise ArgumentTypeMismatch(position, str(type_tag), _kind(value))


def _serialize_struct(ser: Serializer, position: int, type_tag: TypeTag, value: typing.Any):
    tag = type_tag.value
    qualified_name = tag.qualified_name()

    if qualified_name == STRING_STRUCT:
        if not isinstance(value, str):
            raise ArgumentTypeMismatch(position, str(type_tag), _kind(value))
        ser.str(value)
    elif qualified_name == OBJECT_STRUCT:
        ser.struct(_as_address(position, type_tag, value))
    elif qualified_name == OPTION_STRUCT and len(tag.type_args) == 1:
        # Option<T> is encoded as a vector of zero or one T.
        if value is None:
            ser.uleb128(0)
        else:
            ser.uleb128(1)
            _serialize_argument(ser, position, tag.type_args[0], value)
    else:
        raise ArgumentTypeMismatch(
            position, f"{type_tag} (only String, Object and Option structs)", _kind(value)
        )


def _as_integer(position: int, type_tag: TypeTag, value: typing.Any) -> int:
    if isinstance(value, bool):
        raise ArgumentTypeMismatch(position, str(type_tag), _kind(value))
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isascii() and value.isdigit():
        return int(value)
    raise ArgumentTypeMismatch(position, str(type_tag), _kind(value))


def _as_address(position: int, type_tag: TypeTag, value: typing.Any) -> AccountAddress:
    if isinstance(value, AccountAddress):
        return value
    if isinstance(value, str):
        try:
            return AccountAddress.from_str_relaxed(value)
        except ParseAddressError as e:
            raise ArgumentTypeMismatch(
                position, str(type_tag), f"invalid address {value!r}"
            ) from e
    raise ArgumentTypeMismatch(position, str(type_tag), _kind(value))


def _kind(value: typing.Any) -> str:
    return type(value).__name__


class Test(unittest.TestCase):
    def setUp(self):
        abis: List[EntryABI] = [
            EntryABI(
                entry_function_abi(
                    "0x1::coin",
                    "transfer",
                    ["CoinType"],
                    [("to", "address"), ("amount", "u64")],
                )
            ),
            EntryABI(
                entry_function_abi(
                    "0x3::kitchen",
                    "sink",
                    ["T"],
                    [
                        ("account", "signer"),
                        ("flag", "bool"),
                        ("small", "u8"),
                        ("big", "u256"),
                        ("data", "vector<u8>"),
                        ("nested", "vector<vector<u16>>"),
                        ("name", "0x1::string::String"),
                        ("maybe", "0x1::option::Option<u32>"),
                        ("object", "0x1::object::Object<0x1::object::ObjectCore>"),
                        ("generic", "vector<T0>"),
                    ],
                )
            ),
        ]
        self.builder = TransactionBuilderABI(AbiRegistry([abi.to_bytes() for abi in abis]))
        self.recipient = AccountAddress.from_str_relaxed("0x" + "bb" * 31 + "02")

    def kitchen_args(self) -> List[typing.Any]:
        return [True, 7, 2**200, b"\x01\x02", [[1], []], "hi", None, "0x5", [3]]

    def test_transfer(self):
        entry_function = self.builder.build_entry_function(
            "0x1::coin", "transfer", ["0x1::aptos_coin::AptosCoin"], [self.recipient, 1000]
        )
        self.assertEqual(entry_function.ty_args, [parse_type_tag("0x1::aptos_coin::AptosCoin")])
        self.assertEqual(
            entry_function.args,
            [
                encoder(self.recipient, Serializer.struct),
                encoder(1000, Serializer.u64),
            ],
        )

    def test_argument_order_is_significant(self):
        other = AccountAddress.from_str("0x1")
        type_args = ["0x1::aptos_coin::AptosCoin"]
        first = self.builder.build_transaction_payload(
            "0x1::coin", "transfer", type_args, [self.recipient, 5]
        )
        second = self.builder.build_transaction_payload(
            "0x1::coin", "transfer", type_args, [other, 5]
        )
        self.assertNotEqual(first.to_bytes(), second.to_bytes())
        with self.assertRaises(ArgumentTypeMismatch) as ctx:
            self.builder.build_entry_function(
                "0x1::coin", "transfer", type_args, [5, self.recipient]
            )
        self.assertEqual(ctx.exception.position, 0)

    def test_arity(self):
        for type_args in ([], ["u8", "u8"]):
            with self.assertRaises(GenericArityMismatch) as ctx:
                self.builder.build_entry_function(
                    "0x1::coin", "transfer", type_args, [self.recipient, 1]
                )
            self.assertEqual(ctx.exception.expected, 1)
            self.assertEqual(ctx.exception.actual, len(type_args))

    def test_unknown_function(self):
        with self.assertRaises(UnknownFunction):
            self.builder.build_entry_function("0x1::coin", "burn", [], [])
        with self.assertRaises(UnknownFunction):
            self.builder.build_entry_function("0x2::coin", "transfer", ["u8"], [])
        for module in ("0xzz::coin", "coin", "0x1::coin\n", "0x1::coin::transfer"):
            with self.assertRaises(UnknownFunction, msg=module) as ctx:
                self.builder.build_entry_function(module, "transfer", ["u8"], [])
            self.assertEqual(ctx.exception.module, module)

    def test_type_arguments_must_be_concrete(self):
        for type_arg in ("T0", "vector<T0>", "0x1::coin::Coin<T3>"):
            with self.assertRaises(MalformedTypeTag, msg=type_arg):
                self.builder.build_entry_function(
                    "0x1::coin", "transfer", [type_arg], [self.recipient, 1]
                )
        with self.assertRaises(MalformedTypeTag):
            self.builder.build_entry_function(
                "0x1::coin", "transfer", [parse_type_tag("T0")], [self.recipient, 1]
            )

    def test_argument_count(self):
        with self.assertRaises(ArgumentTypeMismatch) as ctx:
            self.builder.build_entry_function("0x1::coin", "transfer", ["u8"], [self.recipient])
        self.assertEqual(ctx.exception.position, 1)

    def test_out_of_range(self):
        for amount in (-1, 2**64):
            with self.assertRaises(ValueOutOfRange):
                self.builder.build_entry_function(
                    "0x1::coin", "transfer", ["u8"], [self.recipient, amount]
                )

    def test_kitchen_sink(self):
        entry_function = self.builder.build_entry_function(
            "0x3::kitchen", "sink", ["u64"], self.kitchen_args()
        )
        self.assertEqual(
            entry_function.args,
            [
                b"\x01",
                b"\x07",
                (2**200).to_bytes(32, "little"),
                b"\x02\x01\x02",
                b"\x02\x01\x01\x00\x00",
                b"\x02hi",
                b"\x00",
                b"\x00" * 31 + b"\x05",
                b"\x01" + (3).to_bytes(8, "little"),
            ],
        )

    def test_option_some_and_string_bytes(self):
        args = self.kitchen_args()
        args[3] = "ab"
        args[6] = 9
        args[2] = "12"
        entry_function = self.builder.build_entry_function("0x3::kitchen", "sink", ["u8"], args)
        self.assertEqual(entry_function.args[2], (12).to_bytes(32, "little"))
        self.assertEqual(entry_function.args[3], b"\x02ab")
        self.assertEqual(entry_function.args[6], b"\x01\x09\x00\x00\x00")
        self.assertEqual(entry_function.args[8], b"\x01\x03")

    def test_shape_mismatches(self):
        bad_values = {
            0: 1,
            1: True,
            2: "-3",
            3: 5,
            4: [["x"]],
            5: b"hi",
            7: "0xnothex",
            8: 3,
        }
        for position, bad in bad_values.items():
            args = self.kitchen_args()
            args[position] = bad
            with self.assertRaises(ArgumentTypeMismatch, msg=str(position)) as ctx:
                self.builder.build_entry_function("0x3::kitchen", "sink", ["u64"], args)
            self.assertEqual(ctx.exception.position, position)

    def test_unsupported_struct(self):
        with self.assertRaises(ArgumentTypeMismatch):
            encode_argument(0, parse_type_tag("0x1::coin::Coin<u8>"), b"")


if __name__ == "__main__":
    unittest.main()
