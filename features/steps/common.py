import typing

from behave import then, use_step_matcher

# Use regular expressions
use_step_matcher("re")


@then(r"it should fail with (?P<error>\w+)")
def then_fail(context: typing.Any, error: str):
    assert context.error is not None, f"Expected {error} but got {context.output}"
    assert type(context.error).__name__ == error, (
        "Expected " + error + " but got " + repr(context.error)
    )
