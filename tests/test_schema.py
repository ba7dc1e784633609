"""
Tests for the schema module.

This test module validates:
- Semantic type mapping from annotations
- InputSpec derivation from function signatures
- Adapting keyword-style functions to the handler contract
- Required-input checks and listing formats
"""

from __future__ import annotations

from typing import Any, Optional, Union

from mcp_dispatch.schema import (
    InputSpec,
    function_handler,
    input_schema,
    inputs_from_function,
    missing_required,
    prompt_arguments,
    semantic_type_of,
)

# =============================================================================
# Tests for semantic_type_of
# =============================================================================


class TestSemanticType:
    """Tests for annotation to type name mapping."""

    def test_builtin_types(self) -> None:
        """Test the builtin scalar and container types."""
        assert semantic_type_of(str) == "string"
        assert semantic_type_of(int) == "integer"
        assert semantic_type_of(float) == "number"
        assert semantic_type_of(bool) == "boolean"
        assert semantic_type_of(list[int]) == "array"
        assert semantic_type_of(dict[str, Any]) == "object"

    def test_optional_unwraps(self) -> None:
        """Test that Optional annotations map to the inner type."""
        assert semantic_type_of(Optional[int]) == "integer"  # noqa: UP007
        assert semantic_type_of(int | None) == "integer"

    def test_string_annotations(self) -> None:
        """Test postponed (string) annotations."""
        assert semantic_type_of("str") == "string"
        assert semantic_type_of("int | None") == "integer"
        assert semantic_type_of("list[str]") == "array"
        assert semantic_type_of("str | int") == "any"

    def test_string_union_forms(self) -> None:
        """Test Union[...] and Optional[...] written as strings."""
        assert semantic_type_of("Union[int, None]") == "integer"
        assert semantic_type_of("typing.Optional[str]") == "string"
        assert semantic_type_of("Union[str, int]") == "any"
        assert semantic_type_of("dict[str, int | None]") == "object"

    def test_unknown_is_any(self) -> None:
        """Test that unannotated and unknown types map to any."""
        assert semantic_type_of(Any) == "any"
        assert semantic_type_of(object) == "any"


# =============================================================================
# Tests for inputs_from_function
# =============================================================================


class TestInputsFromFunction:
    """Tests for signature-derived inputs."""

    def test_required_and_optional(self) -> None:
        """Test that defaults and Optional annotations make inputs optional."""

        def handler(a: int, b: int, note: str | None, limit: int = 10) -> None:
            pass

        specs = inputs_from_function(handler)

        assert [(s.name, s.required) for s in specs] == [
            ("a", True),
            ("b", True),
            ("note", False),
            ("limit", False),
        ]
        assert specs[0].semantic_type == "integer"
        assert specs[0].description == "a a of type integer"

    def test_context_and_var_parameters_skipped(self) -> None:
        """Test that ctx, context, *args and **kwargs are not inputs."""

        def handler(name: str, ctx: Any, *args: Any, **kwargs: Any) -> None:
            pass

        def other(context: Any, value: str) -> None:
            pass

        assert [s.name for s in inputs_from_function(handler)] == ["name"]
        assert [s.name for s in inputs_from_function(other)] == ["value"]

    def test_context_names_are_inputs_without_context(self) -> None:
        """Test that ctx/context are ordinary inputs when no context is passed."""

        def summarize(context: str, ctx: int = 0) -> None:
            pass

        specs = inputs_from_function(summarize, with_context=False)

        assert [(s.name, s.semantic_type, s.required) for s in specs] == [
            ("context", "string", True),
            ("ctx", "integer", False),
        ]

    def test_string_union_none_is_optional(self) -> None:
        """Test that Union[X, None] string annotations make inputs optional."""

        def handler(limit: Union[int, None], tag: Optional[str]) -> None:  # noqa: UP007
            pass

        specs = inputs_from_function(handler)

        assert [(s.name, s.semantic_type, s.required) for s in specs] == [
            ("limit", "integer", False),
            ("tag", "string", False),
        ]


# =============================================================================
# Tests for function_handler
# =============================================================================


class TestFunctionHandler:
    """Tests for adapting keyword-style functions."""

    def test_declared_arguments_passed(self) -> None:
        """Test that declared keys are passed and extras dropped."""

        def add(a: int, b: int) -> int:
            return a + b

        handler = function_handler(add, with_context=False)

        assert handler({"a": 1, "b": 2, "extra": "ignored"}) == 3
        assert handler.__name__ == "add"

    def test_extras_reach_var_keyword(self) -> None:
        """Test that undeclared keys reach **kwargs."""

        def collect(a: int, **kwargs: Any) -> dict[str, Any]:
            return {"a": a, **kwargs}

        handler = function_handler(collect, with_context=False)

        assert handler({"a": 1, "x": 2}) == {"a": 1, "x": 2}

    def test_context_injected(self) -> None:
        """Test that the context reaches the ctx parameter."""

        def tool(value: str, ctx: Any) -> tuple[str, Any]:
            return value, ctx

        handler = function_handler(tool, with_context=True)
        marker = object()

        assert handler({"value": "v"}, marker) == ("v", marker)

    def test_context_name_forwarded_without_context(self) -> None:
        """Test that a context parameter takes its argument in plain handlers."""

        def summarize(context: str) -> str:
            return f"Summary of {context}"

        handler = function_handler(summarize, with_context=False)

        assert handler({"context": "the doc"}) == "Summary of the doc"

    def test_string_union_without_default_gets_none(self) -> None:
        """Test that an absent Union[X, None] parameter is passed None."""

        def tool(limit: Union[int, None]) -> int | None:  # noqa: UP007
            return limit

        handler = function_handler(tool, with_context=False)

        assert handler({}) is None

    def test_optional_without_default_gets_none(self) -> None:
        """Test that an absent Optional parameter without default is None."""

        def tool(note: str | None) -> str | None:
            return note

        handler = function_handler(tool, with_context=False)

        assert handler({}) is None


# =============================================================================
# Tests for validation and listing helpers
# =============================================================================


class TestMissingRequired:
    """Tests for missing_required."""

    def test_first_missing_in_declaration_order(self) -> None:
        """Test that the first absent required input is reported."""
        inputs = [InputSpec("a"), InputSpec("b"), InputSpec("c")]

        assert missing_required(inputs, {"a": 1}) == "b"

    def test_optional_inputs_ignored(self) -> None:
        """Test that optional inputs may be absent."""
        inputs = [InputSpec("a"), InputSpec("b", required=False)]

        assert missing_required(inputs, {"a": 1}) is None

    def test_present_with_none_value(self) -> None:
        """Test that a key present with a null value counts as present."""
        assert missing_required([InputSpec("a")], {"a": None}) is None


class TestListingFormats:
    """Tests for input_schema and prompt_arguments."""

    def test_input_schema(self) -> None:
        """Test the JSON schema rendering."""
        inputs = [
            InputSpec("a", "integer", description="first"),
            InputSpec("tag", required=False),
        ]

        assert input_schema(inputs) == {
            "type": "object",
            "properties": {
                "a": {"type": "integer", "description": "first"},
                "tag": {},
            },
            "required": ["a"],
        }

    def test_input_schema_without_required(self) -> None:
        """Test that an empty required list is omitted."""
        assert input_schema([]) == {"type": "object", "properties": {}}

    def test_prompt_arguments(self) -> None:
        """Test the prompt argument rendering."""
        assert prompt_arguments([InputSpec("name", description="who")]) == [
            {"name": "name", "description": "who", "required": True}
        ]

    def test_input_spec_to_dict(self) -> None:
        """Test InputSpec serialization."""
        assert InputSpec("a", "string").to_dict() == {
            "name": "a",
            "type": "string",
            "required": True,
            "description": "",
        }
