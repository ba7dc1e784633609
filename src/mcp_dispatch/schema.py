"""
Input specifications for tools and prompts.

An InputSpec describes one named argument a handler accepts. Specs are either
declared explicitly at registration time or derived from a Python function
signature with inputs_from_function(). The same specs drive argument
validation (missing_required), tool listings (input_schema) and prompt
listings (prompt_arguments).
"""

from __future__ import annotations

import inspect
import types
import typing
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

# Parameter names that receive the CallContext instead of an argument
CONTEXT_PARAM_NAMES = frozenset({"ctx", "context"})

_TYPE_NAMES: dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    tuple: "array",
    dict: "object",
}

_STRING_TYPE_NAMES: dict[str, str] = {
    "str": "string",
    "int": "integer",
    "float": "number",
    "bool": "boolean",
    "list": "array",
    "tuple": "array",
    "dict": "object",
}


@dataclass(frozen=True)
class InputSpec:
    """
    Declared input of a tool or prompt.

    Attributes:
        name: Argument name (key in the call arguments).
        semantic_type: JSON-schema type name ("string", "integer", ..., "any").
        required: Whether the argument must be present in every call.
        description: Optional human-readable description.
    """

    name: str
    semantic_type: str = "any"
    required: bool = True
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert the spec to a dictionary for listings."""
        return {
            "name": self.name,
            "type": self.semantic_type,
            "required": self.required,
            "description": self.description,
        }


def _split_top_level(text: str, separator: str) -> list[str]:
    """Split text on separator, ignoring separators inside brackets."""
    parts = []
    depth = 0
    start = 0
    for index, char in enumerate(text):
        if char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
        elif char == separator and depth == 0:
            parts.append(text[start:index])
            start = index + 1
    parts.append(text[start:])
    return parts


def _union_members(text: str) -> list[str]:
    """Return the members of a string annotation, one for non-unions."""
    text = text.replace(" ", "").replace("typing.", "")
    if text.startswith("Optional[") and text.endswith("]"):
        return [text[len("Optional[") : -1], "None"]
    if text.startswith("Union[") and text.endswith("]"):
        return _split_top_level(text[len("Union[") : -1], ",")
    return _split_top_level(text, "|")


def _is_optional(annotation: Any) -> bool:
    """Check for Optional[X], Union[X, None] and X | None annotations."""
    if isinstance(annotation, str):
        return "None" in _union_members(annotation)
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        return type(None) in typing.get_args(annotation)
    return False


def semantic_type_of(annotation: Any) -> str:
    """
    Map a Python annotation to a JSON-schema type name.

    Args:
        annotation: Annotation object or string (postponed annotations).

    Returns:
        Type name such as "string" or "integer"; "any" when unknown.
    """
    if annotation is inspect.Parameter.empty or annotation is Any:
        return "any"

    if isinstance(annotation, str):
        parts = [part for part in _union_members(annotation) if part != "None"]
        if len(parts) != 1:
            return "any"
        base = parts[0].split("[", 1)[0]
        return _STRING_TYPE_NAMES.get(base, "any")

    if _is_optional(annotation):
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        return semantic_type_of(args[0]) if len(args) == 1 else "any"

    origin = typing.get_origin(annotation)
    if origin is not None:
        return _TYPE_NAMES.get(origin, "any")
    return _TYPE_NAMES.get(annotation, "any")


def is_context_parameter(param: inspect.Parameter) -> bool:
    """Check whether a parameter receives the CallContext."""
    if param.name in CONTEXT_PARAM_NAMES:
        return True
    annotation = param.annotation
    if isinstance(annotation, str):
        return annotation.split(".")[-1] == "CallContext"
    return getattr(annotation, "__name__", None) == "CallContext"


def _argument_parameters(
    func: Callable[..., Any], *, with_context: bool
) -> list[inspect.Parameter]:
    """Return the parameters of func that map to call arguments."""
    params = []
    for param in inspect.signature(func).parameters.values():
        if param.name == "self":
            continue
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        if with_context and is_context_parameter(param):
            continue
        params.append(param)
    return params


def inputs_from_function(
    func: Callable[..., Any], *, with_context: bool = True
) -> list[InputSpec]:
    """
    Derive InputSpecs from a function signature.

    Each named parameter becomes one spec, marked required unless it has a
    default value or an Optional annotation. *args and **kwargs are skipped,
    and so are context parameters when with_context is True.

    Args:
        func: Function to inspect.
        with_context: Whether ctx/context parameters receive the CallContext.

    Returns:
        InputSpecs in declaration order.

    Example:
        >>> def add(a: int, b: int, note: str | None = None) -> int: ...
        >>> [(s.name, s.required) for s in inputs_from_function(add)]
        [('a', True), ('b', True), ('note', False)]
    """
    specs = []
    for param in _argument_parameters(func, with_context=with_context):
        required = param.default is inspect.Parameter.empty and not _is_optional(
            param.annotation
        )
        specs.append(
            InputSpec(
                name=param.name,
                semantic_type=semantic_type_of(param.annotation),
                required=required,
                description=f"a {param.name} of type {semantic_type_of(param.annotation)}",
            )
        )
    return specs


def function_handler(
    func: Callable[..., Any], *, with_context: bool
) -> Callable[..., Any]:
    """
    Adapt a keyword-style function to the handler(args[, context]) contract.

    Declared parameters receive the matching argument keys. A ctx/context
    parameter receives the CallContext when with_context is True, and is an
    ordinary argument otherwise. Undeclared keys are forwarded only if the
    function accepts **kwargs.

    Args:
        func: Function taking its inputs as keyword parameters.
        with_context: Whether the returned handler takes a context argument.

    Returns:
        Handler callable; returns whatever func returns (awaitable or not).
    """
    signature = inspect.signature(func)
    arg_params = _argument_parameters(func, with_context=with_context)
    declared = {p.name for p in arg_params}
    # Optional parameters without a default still need a value
    implicit_none = [
        p.name
        for p in arg_params
        if p.default is inspect.Parameter.empty and _is_optional(p.annotation)
    ]
    context_params = [
        p.name
        for p in signature.parameters.values()
        if with_context and is_context_parameter(p)
    ]
    accepts_kwargs = any(
        p.kind is inspect.Parameter.VAR_KEYWORD for p in signature.parameters.values()
    )

    def build_kwargs(args: Mapping[str, Any]) -> dict[str, Any]:
        if accepts_kwargs:
            kwargs = dict(args)
        else:
            kwargs = {key: value for key, value in args.items() if key in declared}
        for name in implicit_none:
            kwargs.setdefault(name, None)
        return kwargs

    def context_handler(args: Mapping[str, Any], context: Any) -> Any:
        kwargs = build_kwargs(args)
        for name in context_params:
            kwargs[name] = context
        return func(**kwargs)

    def plain_handler(args: Mapping[str, Any]) -> Any:
        return func(**build_kwargs(args))

    handler = context_handler if with_context else plain_handler
    handler.__name__ = getattr(func, "__name__", "handler")
    handler.__doc__ = func.__doc__
    return handler


def missing_required(
    inputs: Sequence[InputSpec], args: Mapping[str, Any]
) -> str | None:
    """
    Find the first required input absent from args.

    Args:
        inputs: Declared inputs in declaration order.
        args: Call arguments.

    Returns:
        The missing parameter name, or None if all required inputs are present.
    """
    for spec in inputs:
        if spec.required and spec.name not in args:
            return spec.name
    return None


def input_schema(inputs: Sequence[InputSpec]) -> dict[str, Any]:
    """
    Render inputs as a JSON-schema object for tool listings.

    Undeclared properties are allowed; the schema is advisory.
    """
    properties: dict[str, Any] = {}
    for spec in inputs:
        prop: dict[str, Any] = {}
        if spec.semantic_type != "any":
            prop["type"] = spec.semantic_type
        if spec.description:
            prop["description"] = spec.description
        properties[spec.name] = prop

    schema: dict[str, Any] = {"type": "object", "properties": properties}
    required = [spec.name for spec in inputs if spec.required]
    if required:
        schema["required"] = required
    return schema


def prompt_arguments(inputs: Sequence[InputSpec]) -> list[dict[str, Any]]:
    """Render inputs as an MCP prompt argument list."""
    return [
        {
            "name": spec.name,
            "description": spec.description,
            "required": spec.required,
        }
        for spec in inputs
    ]
