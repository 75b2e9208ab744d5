import typing

from behave import given, then, use_step_matcher, when

from aptos_abi.abi import AbiRegistry
from aptos_abi.coin_abis import COIN_ABIS
from aptos_abi.transaction_builder import TransactionBuilderABI
from aptos_abi.transactions import TransactionPayload

# Use regular expressions
use_step_matcher("re")


@given(r"the coin transfer ABIs")
def given_coin_abis(context: typing.Any):
    context.builder = TransactionBuilderABI(AbiRegistry.from_hex(COIN_ABIS))


@when(
    r'I build (?P<function>\S+) with type arguments "(?P<type_args>[^"]*)" and arguments "(?P<args>[^"]*)"'
)
def when_build(context: typing.Any, function: str, type_args: str, args: str):
    module, name = function.rsplit("::", 1)
    context.output = None
    context.error = None
    try:
        context.output = context.builder.build_transaction_payload(
            module, name, split_list(type_args), [parse_arg(arg) for arg in split_list(args)]
        )
    except Exception as e:
        context.error = e


@then(r"the payload bytes should be (?P<hex>[0-9a-f]+)")
def then_payload_bytes(context: typing.Any, hex: str):
    assert context.error is None, repr(context.error)
    assert context.output.to_bytes().hex() == hex, context.output.to_bytes().hex()


@then(r"the payload should decode to the same call")
def then_payload_round_trip(context: typing.Any):
    assert TransactionPayload.from_bytes(context.output.to_bytes()) == context.output


@then(r"argument (?P<position>\d+) should be (?P<hex>[0-9a-f]+)")
def then_argument(context: typing.Any, position: str, hex: str):
    assert context.error is None, repr(context.error)
    assert context.output.value.args[int(position)].hex() == hex


def split_list(value: str) -> typing.List[str]:
    return [item.strip() for item in value.split(";")] if value else []


def parse_arg(value: str) -> typing.Any:
    # Comma separated values make a vector argument
    if "," in value:
        return value.split(",")
    return value
