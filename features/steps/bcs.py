import typing

from behave import given, then, use_step_matcher, when

from aptos_abi.account_address import AccountAddress
from aptos_abi.bcs import Deserializer, Serializer

# Use regular expressions
use_step_matcher("re")

SERIALIZERS = {
    "bool": Serializer.bool,
    "u8": Serializer.u8,
    "u16": Serializer.u16,
    "u32": Serializer.u32,
    "u64": Serializer.u64,
    "u128": Serializer.u128,
    "u256": Serializer.u256,
    "uleb128": Serializer.uleb128,
    "address": Serializer.struct,
    "string": Serializer.str,
}

DESERIALIZERS = {
    "bool": Deserializer.bool,
    "u8": Deserializer.u8,
    "u16": Deserializer.u16,
    "u32": Deserializer.u32,
    "u64": Deserializer.u64,
    "u128": Deserializer.u128,
    "u256": Deserializer.u256,
    "uleb128": Deserializer.uleb128,
    "address": AccountAddress.deserialize,
    "string": Deserializer.str,
}


@given(r"the (?P<kind>\w+) value (?P<value>\S+)")
def given_value(context: typing.Any, kind: str, value: str):
    context.kind = kind
    context.input = parse_value(kind, value)


@given(r"the bytes (?P<hex>[0-9a-f]*)")
def given_bytes(context: typing.Any, hex: str):
    context.input = bytes.fromhex(hex)


@when(r"I serialize it")
def when_serialize(context: typing.Any):
    ser = Serializer()
    context.output = None
    context.error = None
    try:
        SERIALIZERS[context.kind](ser, context.input)
        context.output = ser.output()
    except Exception as e:
        context.error = e


@when(r"I deserialize it as (?P<kind>\w+)")
def when_deserialize(context: typing.Any, kind: str):
    context.kind = kind
    context.output = None
    context.error = None
    try:
        context.output = DESERIALIZERS[kind](Deserializer(context.input))
    except Exception as e:
        context.error = e


@then(r"the bytes should be (?P<hex>[0-9a-f]*)")
def then_bytes(context: typing.Any, hex: str):
    assert context.error is None, repr(context.error)
    assert context.output.hex() == hex, (
        "Expected " + hex + " but got " + context.output.hex()
    )


@then(r"the result should be (?P<value>\S+)")
def then_result(context: typing.Any, value: str):
    assert context.error is None, repr(context.error)
    expected = parse_value(context.kind, value)
    assert context.output == expected, (
        "Expected " + str(expected) + " but got " + str(context.output)
    )


def parse_value(kind: str, value: str) -> typing.Any:
    if kind == "bool":
        return value == "true"
    if kind in ("u8", "u16", "u32", "u64", "u128", "u256", "uleb128"):
        return int(value)
    if kind == "address":
        return AccountAddress.from_str_relaxed(value)
    if kind == "string":
        return value
    raise Exception("Unrecognized input type")
