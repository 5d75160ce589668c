"""
Tests for schemasync.expressions module.
"""

import pytest

from schemasync.exceptions import ExpressionError
from schemasync.expressions import (
    ArrayExpr,
    Call,
    Literal,
    ObjectExpr,
    parse_expression,
    parse_lambda,
    tokenize,
)


class TestTokenize:
    """Test tokenization."""

    def test_comments_and_whitespace_are_dropped(self, lambda_body):
        texts = [t.text for t in tokenize(lambda_body)]

        assert texts == [
            "Lambda", "(", '"ref"', ",", "[", "Var", "(", '"ref"', ")", ",",
            '"this/is/not/a/comment"', "]", ")",
        ]

    def test_positions_are_one_based(self):
        tokens = tokenize('  Var("x")')
        assert tokens[0].position == 3

    def test_unterminated_string(self):
        with pytest.raises(ExpressionError, match="Unterminated string") as exc_info:
            tokenize('Var("x)')
        assert exc_info.value.position == 5

    def test_unterminated_block_comment(self):
        with pytest.raises(ExpressionError, match="Unterminated block comment"):
            tokenize("Var(/* open")

    def test_unexpected_character(self):
        with pytest.raises(ExpressionError, match="Unexpected character"):
            tokenize("Var(x + 1)")


class TestParseExpression:
    """Test parsing into expression trees."""

    def test_literals(self):
        assert parse_expression('"a\\nb"') == Literal("a\nb")
        assert parse_expression("'single'") == Literal("single")
        assert parse_expression("42") == Literal(42)
        assert parse_expression("-1.5") == Literal(-1.5)
        assert parse_expression("true") == Literal(True)
        assert parse_expression("null") == Literal(None)

    def test_nested_calls(self, lambda_body):
        expr = parse_expression(lambda_body)

        assert expr == Call("Lambda", (
            Literal("ref"),
            ArrayExpr((Call("Var", (Literal("ref"),)), Literal("this/is/not/a/comment"))),
        ))

    def test_objects_accept_bare_and_quoted_keys(self):
        expr = parse_expression('{ data: Var("x"), "other": 1 }')

        assert expr == ObjectExpr((("data", Call("Var", (Literal("x"),))), ("other", Literal(1))))

    def test_trailing_comma(self):
        assert parse_expression("[1, 2,]") == ArrayExpr((Literal(1), Literal(2)))

    def test_wire_form(self):
        expr = parse_expression('Select(["data", "owner"], Get(Var("ref")), {k: null})')

        assert expr.to_wire() == {
            "@call": "Select",
            "args": [
                ["data", "owner"],
                {"@call": "Get", "args": [{"@call": "Var", "args": ["ref"]}]},
                {"@object": {"k": None}},
            ],
        }

    def test_bare_identifier_is_rejected(self):
        with pytest.raises(ExpressionError, match="Bare identifier `ref` at position: 13"):
            parse_expression('Lambda("x", ref)')

    def test_lowercase_call_is_rejected(self):
        with pytest.raises(ExpressionError, match="Unknown function `eval`"):
            parse_expression('eval("x")')

    def test_mismatched_bracket(self):
        with pytest.raises(ExpressionError, match=r"Unexpected closing bracket \] at position: 6"):
            parse_expression("Var(1]")

    def test_unclosed_bracket(self):
        with pytest.raises(ExpressionError, match=r"Unclosed bracket \( at position: 4"):
            parse_expression("Var(1")

    def test_missing_separator(self):
        with pytest.raises(ExpressionError, match="Expected `\\)` or `,`"):
            parse_expression("Var(1 2)")

    def test_trailing_tokens(self):
        with pytest.raises(ExpressionError, match="Unexpected token"):
            parse_expression("1 2")


class TestParseLambda:
    """Test Lambda snippet parsing."""

    def test_wraps_in_query(self):
        expr = parse_lambda('Lambda("x", Var("x"))')

        assert expr.name == "Query"
        assert expr.args[0].name == "Lambda"

    def test_existing_query_is_not_double_wrapped(self):
        assert parse_lambda('Query(Lambda("x", Var("x")))') == parse_lambda('Lambda("x", Var("x"))')

    @pytest.mark.parametrize("source", [
        "",
        "// only a comment",
        'Var("x")',
        'Lambda("x", Var("x")) Lambda("y", Var("y"))',
    ])
    def test_requires_exactly_one_lambda(self, source):
        with pytest.raises(ExpressionError, match="FQL must have 1 `Lambda` query"):
            parse_lambda(source)
