# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Type tags for Move types.

A TypeTag is the structured form of a Move type name. It is used three ways:
as a type argument of an entry function call, as a declared parameter type in
an ABI, and, rendered back to a string, as the key of an account resource.
Each tag has exactly one canonical rendering and every canonical rendering
parses back to the same tree.

Grammar accepted by :func:`parse_type_tag`::

    type      := primitive | vector | struct | generic
    primitive := bool | u8 | u16 | u32 | u64 | u128 | u256 | address | signer
    vector    := "vector" "<" type ">"
    struct    := ADDR "::" IDENT "::" IDENT [ "<" type ("," type)* ">" ]
    generic   := "T" DIGITS

Whitespace around arguments is ignored. Canonical rendering uses AIP-40
addresses and ", " between struct type arguments.

Examples:
    Parsing and rendering::

        tag = parse_type_tag("0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>")
        str(tag)  # "0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>"

        parse_type_tag("vector<0x01::string::String>")  # vector<0x1::string::String>

    Resolving an ABI parameter against concrete type arguments::

        parse_type_tag("vector<T0>").substitute([parse_type_tag("u64")])  # vector<u64>
"""

from __future__ import annotations

import re
import typing
import unittest
from typing import List, Optional, Sequence, Tuple

from .account_address import AccountAddress, ParseAddressError
from .bcs import (
    Deserializable,
    DeserializationError,
    Deserializer,
    MAX_U16,
    Serializable,
    Serializer,
)

IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
GENERIC_PARAMETER = re.compile(r"T([0-9]+)")
# Deepest nesting of vector and struct type arguments accepted from strings or bytes.
MAX_TYPE_DEPTH = 64


class MalformedTypeTag(Exception):
    """A type name string does not match the type tag grammar."""

    type_tag: str
    reason: str

    def __init__(self, type_tag: str, reason: str):
        super().__init__(f"Malformed type tag {type_tag!r}: {reason}")
        self.type_tag = type_tag
        self.reason = reason


class GenericArityMismatch(Exception):
    """The number of type arguments does not match the declared generic parameters."""

    expected: int
    actual: int

    def __init__(self, message: str, expected: int, actual: int):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class TypeTag(Deserializable, Serializable):
    """Union over every Move type variant.

    The wrapped ``value`` is one of the tag classes below. The integer
    constants are the BCS discriminators; GENERIC is only ever written inside
    ABI tables, where it stands for one of a function's type parameters.
    """

    BOOL: int = 0
    U8: int = 1
    U64: int = 2
    U128: int = 3
    ACCOUNT_ADDRESS: int = 4
    SIGNER: int = 5
    VECTOR: int = 6
    STRUCT: int = 7
    U16: int = 8
    U32: int = 9
    U256: int = 10
    GENERIC: int = 255

    value: typing.Any

    def __init__(self, value: typing.Any):
        self.value = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TypeTag):
            return NotImplemented
        return (
            self.value.variant() == other.value.variant() and self.value == other.value
        )

    def __hash__(self) -> int:
        return hash(str(self))

    def __str__(self):
        return self.value.__str__()

    def __repr__(self):
        return self.__str__()

    def variant(self) -> int:
        return self.value.variant()

    @staticmethod
    def from_str(type_tag: str) -> TypeTag:
        return parse_type_tag(type_tag)

    def substitute(self, type_args: Sequence[TypeTag]) -> TypeTag:
        """Return a copy with every generic placeholder replaced by ``type_args[index]``."""
        value = self.value
        if isinstance(value, GenericTag):
            if value.index >= len(type_args):
                raise GenericArityMismatch(
                    f"{value} is not bound, only {len(type_args)} type arguments given",
                    value.index + 1,
                    len(type_args),
                )
            return type_args[value.index]
        if isinstance(value, VectorTag):
            return TypeTag(VectorTag(value.element.substitute(type_args)))
        if isinstance(value, StructTag):
            return TypeTag(
                StructTag(
                    value.address,
                    value.module,
                    value.name,
                    [arg.substitute(type_args) for arg in value.type_args],
                )
            )
        return self

    def is_generic(self) -> bool:
        """True if a generic placeholder appears anywhere in this tag."""
        value = self.value
        if isinstance(value, GenericTag):
            return True
        if isinstance(value, VectorTag):
            return value.element.is_generic()
        if isinstance(value, StructTag):
            return any(arg.is_generic() for arg in value.type_args)
        return False

    def validate(self, depth: int = 0):
        """Check that this tag renders to a string parse_type_tag reads back.

        Tags decoded from bytes skip the parser, so their identifiers and
        nesting are checked here.

        Raises:
            MalformedTypeTag: On an invalid struct identifier or nesting deeper
                than MAX_TYPE_DEPTH.
        """
        if depth > MAX_TYPE_DEPTH:
            raise MalformedTypeTag("type tag", f"nested deeper than {MAX_TYPE_DEPTH} levels")
        value = self.value
        if isinstance(value, VectorTag):
            value.element.validate(depth + 1)
        elif isinstance(value, StructTag):
            for identifier in (value.module, value.name):
                if not IDENTIFIER.fullmatch(identifier):
                    raise MalformedTypeTag(
                        f"{value.address}::{value.module}::{value.name}",
                        f"invalid identifier {identifier!r}",
                    )
            for arg in value.type_args:
                arg.validate(depth + 1)

    def generic_indices(self) -> List[int]:
        value = self.value
        if isinstance(value, GenericTag):
            return [value.index]
        if isinstance(value, VectorTag):
            return value.element.generic_indices()
        if isinstance(value, StructTag):
            return [i for arg in value.type_args for i in arg.generic_indices()]
        return []

    @staticmethod
    def deserialize(deserializer: Deserializer) -> TypeTag:
        variant = deserializer.uleb128()
        tag_class = VARIANTS.get(variant)
        if tag_class is None:
            raise DeserializationError(f"Unknown type tag variant: {variant}")
        return TypeTag(tag_class.deserialize(deserializer))

    def serialize(self, serializer: Serializer):
        serializer.uleb128(self.value.variant())
        serializer.struct(self.value)


class PrimitiveTag(Deserializable, Serializable):
    """A type without parameters; its BCS form is the discriminator alone."""

    NAME: str = ""
    VARIANT: int = -1

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PrimitiveTag):
            return NotImplemented
        return self.VARIANT == other.VARIANT

    def __hash__(self) -> int:
        return hash(self.NAME)

    def __str__(self):
        return self.NAME

    def variant(self):
        return self.VARIANT

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> PrimitiveTag:
        return cls()

    def serialize(self, serializer: Serializer):
        pass


class BoolTag(PrimitiveTag):
    NAME = "bool"
    VARIANT = TypeTag.BOOL


class U8Tag(PrimitiveTag):
    NAME = "u8"
    VARIANT = TypeTag.U8


class U16Tag(PrimitiveTag):
    NAME = "u16"
    VARIANT = TypeTag.U16


class U32Tag(PrimitiveTag):
    NAME = "u32"
    VARIANT = TypeTag.U32


class U64Tag(PrimitiveTag):
    NAME = "u64"
    VARIANT = TypeTag.U64


class U128Tag(PrimitiveTag):
    NAME = "u128"
    VARIANT = TypeTag.U128


class U256Tag(PrimitiveTag):
    NAME = "u256"
    VARIANT = TypeTag.U256


class AccountAddressTag(PrimitiveTag):
    NAME = "address"
    VARIANT = TypeTag.ACCOUNT_ADDRESS


class SignerTag(PrimitiveTag):
    NAME = "signer"
    VARIANT = TypeTag.SIGNER


class VectorTag(Deserializable, Serializable):
    """``vector<element>``."""

    element: TypeTag

    def __init__(self, element: TypeTag):
        self.element = element

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VectorTag):
            return NotImplemented
        return self.element == other.element

    def __hash__(self) -> int:
        return hash(str(self))

    def __str__(self):
        return f"vector<{self.element}>"

    def variant(self):
        return TypeTag.VECTOR

    @staticmethod
    def deserialize(deserializer: Deserializer) -> VectorTag:
        return VectorTag(deserializer.struct(TypeTag))

    def serialize(self, serializer: Serializer):
        serializer.struct(self.element)


class GenericTag(Deserializable, Serializable):
    """Placeholder for a function's own type parameter, rendered ``T<index>``."""

    index: int

    def __init__(self, index: int):
        self.index = index

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GenericTag):
            return NotImplemented
        return self.index == other.index

    def __hash__(self) -> int:
        return hash(self.index)

    def __str__(self):
        return f"T{self.index}"

    def variant(self):
        return TypeTag.GENERIC

    @staticmethod
    def deserialize(deserializer: Deserializer) -> GenericTag:
        return GenericTag(deserializer.u16())

    def serialize(self, serializer: Serializer):
        serializer.u16(self.index)


class StructTag(Deserializable, Serializable):
    """A struct type, fully qualified by address and module, with its type arguments.

    Attributes:
        address: The account address where the module is published.
        module: The name of the module containing the struct.
        name: The name of the struct.
        type_args: Type arguments for generic structs, in declaration order.

    Examples:
        Building ``0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>`` by hand::

            StructTag(
                AccountAddress.from_str("0x1"),
                "coin",
                "CoinStore",
                [TypeTag(StructTag.from_str("0x1::aptos_coin::AptosCoin"))],
            )
    """

    address: AccountAddress
    module: str
    name: str
    type_args: List[TypeTag]

    def __init__(
        self,
        address: AccountAddress,
        module: str,
        name: str,
        type_args: List[TypeTag],
    ):
        self.address = address
        self.module = module
        self.name = name
        self.type_args = type_args

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StructTag):
            return NotImplemented
        return (
            self.address == other.address
            and self.module == other.module
            and self.name == other.name
            and self.type_args == other.type_args
        )

    def __hash__(self) -> int:
        return hash(str(self))

    def __str__(self) -> str:
        value = self.qualified_name()
        if len(self.type_args) > 0:
            value += f"<{self.type_args[0]}"
            for type_arg in self.type_args[1:]:
                value += f", {type_arg}"
            value += ">"
        return value

    def qualified_name(self) -> str:
        """``address::module::name`` without type arguments."""
        return f"{self.address}::{self.module}::{self.name}"

    @staticmethod
    def from_str(type_tag: str) -> StructTag:
        """Parse a struct type name; any other kind of type is rejected."""
        parsed = parse_type_tag(type_tag)
        if not isinstance(parsed.value, StructTag):
            raise MalformedTypeTag(type_tag, "expected a struct type")
        return parsed.value

    def variant(self):
        return TypeTag.STRUCT

    @staticmethod
    def deserialize(deserializer: Deserializer) -> StructTag:
        address = deserializer.struct(AccountAddress)
        module = deserializer.str()
        name = deserializer.str()
        type_args = deserializer.sequence(TypeTag.deserialize)
        return StructTag(address, module, name, type_args)

    def serialize(self, serializer: Serializer):
        self.address.serialize(serializer)
        serializer.str(self.module)
        serializer.str(self.name)
        serializer.sequence(self.type_args, Serializer.struct)


PRIMITIVES = {
    tag.NAME: tag
    for tag in (
        BoolTag,
        U8Tag,
        U16Tag,
        U32Tag,
        U64Tag,
        U128Tag,
        U256Tag,
        AccountAddressTag,
        SignerTag,
    )
}

VARIANTS: typing.Dict[int, typing.Any] = {tag.VARIANT: tag for tag in PRIMITIVES.values()}
VARIANTS[TypeTag.VECTOR] = VectorTag
VARIANTS[TypeTag.STRUCT] = StructTag
VARIANTS[TypeTag.GENERIC] = GenericTag


def parse_type_tag(type_tag: str) -> TypeTag:
    """Parse a Move type name into a TypeTag tree.

    Raises:
        MalformedTypeTag: On unbalanced brackets, an empty argument list,
            an invalid identifier or address, or a vector without exactly
            one element type.
    """
    return _parse(type_tag, type_tag, 0)


def _parse(text: str, source: str, depth: int) -> TypeTag:
    if depth > MAX_TYPE_DEPTH:
        raise MalformedTypeTag(source, f"nested deeper than {MAX_TYPE_DEPTH} levels")
    text = text.strip()
    if not text:
        raise MalformedTypeTag(source, "empty type")

    primitive = PRIMITIVES.get(text)
    if primitive is not None:
        return TypeTag(primitive())

    generic = GENERIC_PARAMETER.fullmatch(text)
    if generic:
        index = int(generic.group(1))
        if index > MAX_U16:
            raise MalformedTypeTag(source, f"type parameter index {index} exceeds u16")
        return TypeTag(GenericTag(index))

    head, args = _split_generic_args(text, source)
    head = head.strip()

    if head == "vector":
        if args is None or len(args) != 1:
            raise MalformedTypeTag(source, "vector takes exactly one type argument")
        return TypeTag(VectorTag(_parse(args[0], source, depth + 1)))

    path = head.split("::")
    if len(path) != 3:
        raise MalformedTypeTag(source, f"expected ADDRESS::MODULE::NAME, found {head!r}")
    address, module, name = path
    for identifier in (module, name):
        if not IDENTIFIER.fullmatch(identifier):
            raise MalformedTypeTag(source, f"invalid identifier {identifier!r}")

    type_args = [_parse(arg, source, depth + 1) for arg in args] if args is not None else []
    return TypeTag(StructTag(_parse_address(address, source), module, name, type_args))


def _split_generic_args(text: str, source: str) -> Tuple[str, Optional[List[str]]]:
    """Split ``head<a, b<c, d>>`` into ``head`` and its top-level arguments.

    One pass with a depth counter: commas only separate arguments at depth 1,
    so ``b<c, d>`` stays whole. Returns ``None`` for the arguments when the
    text has no ``<``.
    """
    depth = 0
    head_end = -1
    start = 0
    args: List[str] = []

    for index, letter in enumerate(text):
        if letter == "<":
            if depth == 0:
                head_end = index
                start = index + 1
            depth += 1
        elif letter == ">":
            depth -= 1
            if depth < 0:
                raise MalformedTypeTag(source, "unmatched '>'")
            if depth == 0:
                args.append(text[start:index])
                if text[index + 1 :].strip():
                    raise MalformedTypeTag(source, "unexpected text after '>'")
        elif letter == ",":
            if depth == 0:
                raise MalformedTypeTag(source, "',' outside a type argument list")
            if depth == 1:
                args.append(text[start:index])
                start = index + 1

    if depth != 0:
        raise MalformedTypeTag(source, "unmatched '<'")
    if head_end < 0:
        return text, None

    args = [arg.strip() for arg in args]
    if len(args) == 1 and not args[0]:
        raise MalformedTypeTag(source, "empty type argument list")
    if not all(args):
        raise MalformedTypeTag(source, "empty type argument")
    return text[:head_end], args


def _parse_address(address: str, source: str) -> AccountAddress:
    try:
        return AccountAddress.from_str_relaxed(address)
    except ParseAddressError as e:
        raise MalformedTypeTag(source, f"invalid address {address!r}: {e}") from e


class Test(unittest.TestCase):
    def test_nested_structs(self):
        l0 = "0x0::l0::L0"
        l10 = "0x1::l10::L10"
        l20 = "0x2::l20::L20"
        l11 = "0x1::l11::L11"
        composite = f"{l0}<{l10}<{l20}>, {l11}>"
        derived = StructTag.from_str(composite)
        self.assertEqual(composite, f"{derived}")
        self.assertEqual(derived, StructTag.from_bytes(derived.to_bytes()))

    def test_nested_commas_are_not_split(self):
        tag = parse_type_tag("0x1::a::B<0x1::c::D<u8,u8>,u64>")
        self.assertEqual(len(tag.value.type_args), 2)
        self.assertEqual(str(tag.value.type_args[0]), "0x1::c::D<u8, u8>")
        self.assertEqual(tag.value.type_args[1], TypeTag(U64Tag()))

    def test_canonical_round_trip(self):
        for canonical in [
            "bool",
            "u8",
            "u256",
            "address",
            "signer",
            "vector<u8>",
            "vector<vector<address>>",
            "T0",
            "vector<T1>",
            "0x1::aptos_coin::AptosCoin",
            "0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>",
            "0x1::option::Option<vector<0x1::string::String>>",
            "0x1::a::B<0x1::c::D<u8, u8>, u64>",
            "0xca843279e3427144cead5e4d5999a3d0ca843279e3427144cead5e4d5999a3d0::m::S",
        ]:
            parsed = parse_type_tag(canonical)
            self.assertEqual(str(parsed), canonical)
            self.assertEqual(parse_type_tag(str(parsed)), parsed)

    def test_non_canonical_normalizes(self):
        tag = parse_type_tag("  0x01::coin::CoinStore< 0x0001::aptos_coin::AptosCoin >")
        self.assertEqual(str(tag), "0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>")
        self.assertEqual(str(parse_type_tag(str(tag))), str(tag))
        self.assertEqual(str(parse_type_tag("vector< u8 >")), "vector<u8>")
        self.assertEqual(str(parse_type_tag("1::m::S")), "0x1::m::S")

    def test_malformed(self):
        for bad in [
            "",
            "0x1::a::B<",
            "0x1::a::B>",
            "0x1::a::B<u8>>",
            "0x1::a::B<>",
            "0x1::a::B<u8,>",
            "0x1::a::B<u8>x",
            "0x1::a",
            "0x1::a::B::C",
            "0x1::1a::B",
            "0x1::a::B-C",
            "0xzz::a::B",
            "vector",
            "vector<>",
            "vector<u8, u8>",
            "vector<0x1::a>",
            "u8, u8",
            "u9",
            "0x1::a\n::B",
            "vector<0x1::a\n::B>",
            "T1x",
            "T70000",
        ]:
            with self.assertRaises(MalformedTypeTag, msg=bad):
                parse_type_tag(bad)

    def test_nesting_limit(self):
        deepest = "vector<" * MAX_TYPE_DEPTH + "u8" + ">" * MAX_TYPE_DEPTH
        self.assertEqual(str(parse_type_tag(deepest)), deepest)
        for depth in [MAX_TYPE_DEPTH + 1, 5000]:
            with self.assertRaises(MalformedTypeTag):
                parse_type_tag("vector<" * depth + "u8" + ">" * depth)
        self.assertEqual(parse_type_tag("T65535"), TypeTag(GenericTag(MAX_U16)))

    def test_validate(self):
        parse_type_tag("0x1::coin::CoinStore<vector<T0>>").validate()
        bad_name = TypeTag(StructTag(AccountAddress.from_str("0x1"), "coin", "Coin\n", []))
        with self.assertRaises(MalformedTypeTag):
            TypeTag(VectorTag(bad_name)).validate()
        too_deep = TypeTag(U8Tag())
        for _ in range(MAX_TYPE_DEPTH + 1):
            too_deep = TypeTag(VectorTag(too_deep))
        with self.assertRaises(MalformedTypeTag):
            too_deep.validate()

    def test_struct_from_str_requires_struct(self):
        self.assertRaises(MalformedTypeTag, StructTag.from_str, "vector<u8>")

    def test_struct_bcs_layout(self):
        tag = parse_type_tag("0x1::aptos_coin::AptosCoin")
        expected = (
            b"\x07"
            + b"\x00" * 31
            + b"\x01"
            + b"\x0aaptos_coin"
            + b"\x09AptosCoin"
            + b"\x00"
        )
        self.assertEqual(tag.to_bytes(), expected)
        self.assertEqual(TypeTag.from_bytes(expected), tag)

    def test_vector_and_generic_bcs(self):
        self.assertEqual(parse_type_tag("vector<u64>").to_bytes(), b"\x06\x02")
        self.assertEqual(parse_type_tag("T1").to_bytes(), b"\xff\x01\x01\x00")
        self.assertEqual(TypeTag.from_bytes(b"\xff\x01\x01\x00"), TypeTag(GenericTag(1)))
        with self.assertRaises(DeserializationError):
            TypeTag.from_bytes(b"\x0b")

    def test_substitute(self):
        declared = parse_type_tag("0x1::coin::Coin<vector<T1>>")
        resolved = declared.substitute([parse_type_tag("u8"), parse_type_tag("bool")])
        self.assertEqual(str(resolved), "0x1::coin::Coin<vector<bool>>")
        self.assertTrue(declared.is_generic())
        self.assertFalse(resolved.is_generic())
        self.assertEqual(declared.generic_indices(), [1])
        with self.assertRaises(GenericArityMismatch):
            declared.substitute([parse_type_tag("u8")])

    def test_hashable(self):
        keys = {parse_type_tag("0x01::a::B<u8>"): 1}
        self.assertEqual(keys[parse_type_tag("0x1::a::B<u8>")], 1)


if __name__ == "__main__":
    unittest.main()
