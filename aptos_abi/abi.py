# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Entry-function ABIs and the registry that holds them.

An ABI describes one callable function: its fully-qualified name, its type
parameters and its ordered parameter types. ABIs arrive as an opaque table of
BCS byte strings (the Move ``EntryABI`` layout) and are decoded once, when the
registry is built. The registry is never modified afterwards, so any number of
builders may read it concurrently.

Raw layout of one table entry::

    EntryABI := uleb128 variant (0 = transaction script, 1 = entry function)
    EntryFunctionABI :=
        name: str
        module: ModuleId
        doc: str
        ty_args: seq<TypeArgumentABI{name: str}>
        args: seq<ArgumentABI{name: str, type_tag: TypeTag}>

A parameter whose type mentions ``T<n>`` refers to the function's n-th type
parameter.
"""

from __future__ import annotations

import logging
import typing
import unittest
from types import MappingProxyType
from typing import Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from .account_address import AccountAddress, ParseAddressError
from .bcs import (
    Deserializable,
    DeserializationError,
    Deserializer,
    Serializable,
    Serializer,
)
from .transactions import ModuleId
from .type_tag import (
    IDENTIFIER,
    MalformedTypeTag,
    StructTag,
    TypeTag,
    VectorTag,
    parse_type_tag,
)

AbiKey = Tuple[AccountAddress, str, str]


class InvalidAbiEntry(Exception):
    """One raw table entry could not be decoded into an entry-function ABI."""

    index: int
    reason: str

    def __init__(self, index: int, reason: str):
        super().__init__(f"Invalid ABI entry #{index}: {reason}")
        self.index = index
        self.reason = reason


class UnknownFunction(Exception):
    """No ABI is registered for the requested function."""

    module: str
    function: str

    def __init__(self, module: str, function: str):
        super().__init__(f"No ABI registered for {module}::{function}")
        self.module = module
        self.function = function


class TypeArgumentABI(Deserializable, Serializable):
    name: str

    def __init__(self, name: str):
        self.name = name

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TypeArgumentABI):
            return NotImplemented
        return self.name == other.name

    @staticmethod
    def deserialize(deserializer: Deserializer) -> TypeArgumentABI:
        return TypeArgumentABI(deserializer.str())

    def serialize(self, serializer: Serializer):
        serializer.str(self.name)


class ArgumentABI(Deserializable, Serializable):
    name: str
    type_tag: TypeTag

    def __init__(self, name: str, type_tag: TypeTag):
        self.name = name
        self.type_tag = type_tag

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ArgumentABI):
            return NotImplemented
        return self.name == other.name and self.type_tag == other.type_tag

    def __str__(self):
        return f"{self.name}: {self.type_tag}"

    @staticmethod
    def deserialize(deserializer: Deserializer) -> ArgumentABI:
        name = deserializer.str()
        type_tag = deserializer.struct(TypeTag)
        return ArgumentABI(name, type_tag)

    def serialize(self, serializer: Serializer):
        serializer.str(self.name)
        serializer.struct(self.type_tag)


class EntryFunctionABI(Deserializable, Serializable):
    """The declared signature of one entry function.

    Attributes:
        name: Function name.
        module: Declaring module.
        doc: Documentation carried in the table, often empty.
        ty_args: Declared type parameters; their count is the generic arity.
        args: Declared parameters in order.
    """

    name: str
    module: ModuleId
    doc: str
    ty_args: List[TypeArgumentABI]
    args: List[ArgumentABI]

    def __init__(
        self,
        name: str,
        module: ModuleId,
        doc: str,
        ty_args: List[TypeArgumentABI],
        args: List[ArgumentABI],
    ):
        self.name = name
        self.module = module
        self.doc = doc
        self.ty_args = ty_args
        self.args = args

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EntryFunctionABI):
            return NotImplemented
        return (
            self.name == other.name
            and self.module == other.module
            and self.doc == other.doc
            and self.ty_args == other.ty_args
            and self.args == other.args
        )

    def __str__(self):
        generics = ""
        if self.ty_args:
            generics = "<" + ", ".join(ty_arg.name for ty_arg in self.ty_args) + ">"
        params = ", ".join(str(arg) for arg in self.args)
        return f"{self.module}::{self.name}{generics}({params})"

    def __repr__(self):
        return self.__str__()

    @property
    def generic_arity(self) -> int:
        return len(self.ty_args)

    def key(self) -> AbiKey:
        return (self.module.address, self.module.name, self.name)

    def validate(self):
        """Check identifiers and that every ``T<n>`` refers to a declared type parameter.

        Raises:
            ValueError: Describing the first problem found.
            MalformedTypeTag: If a parameter type would not parse back from its
                rendering.
        """
        for identifier in (self.name, self.module.name):
            if not IDENTIFIER.fullmatch(identifier):
                raise ValueError(f"invalid identifier {identifier!r}")
        for arg in self.args:
            arg.type_tag.validate()
            for index in arg.type_tag.generic_indices():
                if index >= self.generic_arity:
                    raise ValueError(
                        f"parameter {arg.name} uses T{index} but only "
                        f"{self.generic_arity} type parameters are declared"
                    )

    @staticmethod
    def deserialize(deserializer: Deserializer) -> EntryFunctionABI:
        name = deserializer.str()
        module = deserializer.struct(ModuleId)
        doc = deserializer.str()
        ty_args = deserializer.sequence(TypeArgumentABI.deserialize)
        args = deserializer.sequence(ArgumentABI.deserialize)
        return EntryFunctionABI(name, module, doc, ty_args, args)

    def serialize(self, serializer: Serializer):
        serializer.str(self.name)
        serializer.struct(self.module)
        serializer.str(self.doc)
        serializer.sequence(self.ty_args, Serializer.struct)
        serializer.sequence(self.args, Serializer.struct)


class EntryABI(Deserializable, Serializable):
    """The tagged union each raw table entry is encoded as."""

    TRANSACTION_SCRIPT: int = 0
    ENTRY_FUNCTION: int = 1

    value: EntryFunctionABI

    def __init__(self, value: EntryFunctionABI):
        self.value = value

    @staticmethod
    def deserialize(deserializer: Deserializer) -> EntryABI:
        variant = deserializer.uleb128()
        if variant == EntryABI.ENTRY_FUNCTION:
            return EntryABI(EntryFunctionABI.deserialize(deserializer))
        if variant == EntryABI.TRANSACTION_SCRIPT:
            raise DeserializationError("transaction script ABIs are not supported")
        raise DeserializationError(f"Unknown ABI variant: {variant}")

    def serialize(self, serializer: Serializer):
        serializer.uleb128(EntryABI.ENTRY_FUNCTION)
        serializer.struct(self.value)


class AbiRegistry:
    """Read-only lookup from ``(address, module, function)`` to an EntryFunctionABI.

    The whole table is decoded in the constructor. If any entry is invalid the
    constructor raises and no registry exists, so a partially decoded table is
    never visible.

    Examples:
        Building from the hex table shipped with the client::

            registry = AbiRegistry.from_hex(COIN_ABIS)
            registry.lookup("0x1", "coin", "transfer")
    """

    _entries: Mapping[AbiKey, EntryFunctionABI]

    def __init__(self, raw_abis: Iterable[bytes]):
        entries = {}
        for index, raw_abi in enumerate(raw_abis):
            abi = AbiRegistry.register(raw_abi, index)
            key = abi.key()
            if key in entries:
                raise InvalidAbiEntry(index, f"duplicate ABI for {abi.module}::{abi.name}")
            entries[key] = abi
            logging.debug(f"Registered ABI {abi}")
        self._entries = MappingProxyType(entries)
        logging.debug(f"ABI registry built with {len(entries)} entry functions")

    @staticmethod
    def from_hex(hex_abis: Iterable[str]) -> AbiRegistry:
        raw_abis = []
        for index, hex_abi in enumerate(hex_abis):
            try:
                raw_abis.append(bytes.fromhex(hex_abi.removeprefix("0x")))
            except ValueError as e:
                raise InvalidAbiEntry(index, f"not a hex string: {e}") from e
        return AbiRegistry(raw_abis)

    @staticmethod
    def register(raw_abi: bytes, index: int = 0) -> EntryFunctionABI:
        """Decode and validate one raw table entry.

        ``index`` is the entry's position in its table and is only used to
        label errors.

        Raises:
            InvalidAbiEntry: If the bytes do not decode to exactly one valid
                entry-function ABI.
        """
        try:
            abi = EntryABI.from_bytes(raw_abi).value
            abi.validate()
        except (DeserializationError, MalformedTypeTag, ValueError) as e:
            raise InvalidAbiEntry(index, str(e)) from e
        except RecursionError as e:
            raise InvalidAbiEntry(index, "type tag nesting too deep") from e
        return abi

    def lookup(
        self,
        module_address: Union[AccountAddress, str],
        module_name: str,
        function_name: str,
    ) -> Optional[EntryFunctionABI]:
        """Return the ABI, or None when nothing is registered under that name.

        An address string that does not parse cannot name a registered module,
        so it also yields None.
        """
        if isinstance(module_address, str):
            try:
                module_address = AccountAddress.from_str_relaxed(module_address)
            except ParseAddressError:
                return None
        return self._entries.get((module_address, module_name, function_name))

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[EntryFunctionABI]:
        return iter(self._entries.values())

    def __contains__(self, key: typing.Any) -> bool:
        return key in self._entries


def entry_function_abi(
    module: str,
    name: str,
    ty_args: List[str],
    args: List[Tuple[str, str]],
    doc: str = "",
) -> EntryFunctionABI:
    """Describe an ABI with type strings, e.g. ``[("to", "address"), ("amount", "u64")]``."""
    return EntryFunctionABI(
        name,
        ModuleId.from_str(module),
        doc,
        [TypeArgumentABI(ty_arg) for ty_arg in ty_args],
        [ArgumentABI(arg_name, parse_type_tag(arg_type)) for arg_name, arg_type in args],
    )


class Test(unittest.TestCase):
    def transfer_abi(self) -> EntryFunctionABI:
        return entry_function_abi(
            "0x1::coin", "transfer", ["CoinType"], [("to", "address"), ("amount", "u64")]
        )

    def test_lookup(self):
        abi = self.transfer_abi()
        registry = AbiRegistry([EntryABI(abi).to_bytes()])
        self.assertEqual(len(registry), 1)
        self.assertEqual(registry.lookup("0x1", "coin", "transfer"), abi)
        self.assertEqual(
            registry.lookup(AccountAddress.from_str("0x1"), "coin", "transfer"), abi
        )
        self.assertIsNone(registry.lookup("0x1", "coin", "burn"))
        self.assertIsNone(registry.lookup("0x2", "coin", "transfer"))
        self.assertEqual(abi.generic_arity, 1)
        self.assertEqual(str(abi), "0x1::coin::transfer<CoinType>(to: address, amount: u64)")

    def test_layout(self):
        raw = EntryABI(self.transfer_abi()).to_bytes()
        expected = (
            b"\x01"
            + b"\x08transfer"
            + b"\x00" * 31
            + b"\x01"
            + b"\x04coin"
            + b"\x00"
            + b"\x01\x08CoinType"
            + b"\x02"
            + b"\x02to\x04"
            + b"\x06amount\x02"
        )
        self.assertEqual(raw, expected)

    def test_build_is_atomic(self):
        good = EntryABI(self.transfer_abi()).to_bytes()
        with self.assertRaises(InvalidAbiEntry) as ctx:
            AbiRegistry([good, good[:-3]])
        self.assertEqual(ctx.exception.index, 1)

    def test_invalid_entries(self):
        good = EntryABI(self.transfer_abi()).to_bytes()
        self.assertRaises(InvalidAbiEntry, AbiRegistry.register, good + b"\x00")
        self.assertRaises(InvalidAbiEntry, AbiRegistry.register, b"\x00")
        self.assertRaises(InvalidAbiEntry, AbiRegistry.register, b"\x07")
        self.assertRaises(InvalidAbiEntry, AbiRegistry, [good, good])
        self.assertRaises(InvalidAbiEntry, AbiRegistry.from_hex, ["0xnothex"])

    def test_unbound_generic_rejected(self):
        abi = entry_function_abi("0x1::m", "f", [], [("v", "vector<T0>")])
        with self.assertRaises(InvalidAbiEntry) as ctx:
            AbiRegistry.register(EntryABI(abi).to_bytes())
        self.assertIn("T0", ctx.exception.reason)

    def test_invalid_struct_identifier_in_parameter(self):
        for module, name in (("a::b<", "C"), ("a", "B\n"), ("1a", "B")):
            struct = StructTag(AccountAddress.from_str("0x1"), module, name, [])
            abi = entry_function_abi("0x1::m", "f", [], [])
            abi.args.append(ArgumentABI("x", TypeTag(VectorTag(TypeTag(struct)))))
            with self.assertRaises(InvalidAbiEntry, msg=repr(module + name)):
                AbiRegistry.register(EntryABI(abi).to_bytes())

    def test_deeply_nested_parameter(self):
        prefix = EntryABI(entry_function_abi("0x1::m", "f", [], [])).to_bytes()[:-1]
        for depth in (100, 5000):
            raw = prefix + b"\x01\x01v" + b"\x06" * depth + b"\x01"
            with self.assertRaises(InvalidAbiEntry, msg=str(depth)):
                AbiRegistry.register(raw)
        shallow = prefix + b"\x01\x01v" + b"\x06" * 3 + b"\x01"
        self.assertEqual(
            str(AbiRegistry.register(shallow)), "0x1::m::f(v: vector<vector<vector<u8>>>)"
        )

    def test_lookup_with_unparseable_address(self):
        registry = AbiRegistry([EntryABI(self.transfer_abi()).to_bytes()])
        self.assertIsNone(registry.lookup("0xzz", "coin", "transfer"))
        self.assertIsNone(registry.lookup("", "coin", "transfer"))

    def test_from_hex(self):
        raw = EntryABI(self.transfer_abi()).to_bytes()
        registry = AbiRegistry.from_hex(["0x" + raw.hex()])
        self.assertIn((AccountAddress.from_str("0x1"), "coin", "transfer"), registry)
        self.assertEqual([str(abi) for abi in registry], [str(self.transfer_abi())])


if __name__ == "__main__":
    unittest.main()
