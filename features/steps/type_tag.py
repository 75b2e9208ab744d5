import typing

from behave import given, then, use_step_matcher, when

from aptos_abi.type_tag import parse_type_tag

# Use regular expressions
use_step_matcher("re")


@given(r'the type tag string "(?P<text>[^"]*)"')
def given_type_tag_string(context: typing.Any, text: str):
    context.input = text


@when(r"I parse it")
def when_parse(context: typing.Any):
    context.output = None
    context.error = None
    try:
        context.output = parse_type_tag(context.input)
    except Exception as e:
        context.error = e


@then(r'it should render as "(?P<text>[^"]*)"')
def then_render(context: typing.Any, text: str):
    assert context.error is None, repr(context.error)
    assert str(context.output) == text, (
        "Expected " + text + " but got " + str(context.output)
    )
    assert parse_type_tag(text) == context.output


@then(r"its BCS bytes should be (?P<hex>[0-9a-f]+)")
def then_type_tag_bytes(context: typing.Any, hex: str):
    assert context.error is None, repr(context.error)
    assert context.output.to_bytes().hex() == hex
