import typing

from behave import given, then, use_step_matcher, when

from aptos_abi.coin_client import CoinClient, index_resources

# Use regular expressions
use_step_matcher("re")


@given(r'the resource "(?P<resource_type>[^"]+)" with coin value (?P<value>\S+)')
def given_resource(context: typing.Any, resource_type: str, value: str):
    if getattr(context, "resources", None) is None:
        context.resources = []
    context.resources.append({"type": resource_type, "data": {"coin": {"value": value}}})


@when(r'I read the balance of "(?P<coin_type>[^"]+)"')
def when_read_balance(context: typing.Any, coin_type: str):
    context.output = None
    context.error = None
    try:
        context.output = CoinClient().balance(index_resources(context.resources), coin_type)
    except Exception as e:
        context.error = e


@then(r"the balance should be (?P<value>\d+)")
def then_balance(context: typing.Any, value: str):
    assert context.error is None, repr(context.error)
    assert context.output == int(value)
