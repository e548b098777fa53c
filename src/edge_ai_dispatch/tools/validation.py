"""Argument validation for tool calls.

Tools defined with a pydantic ``args_model`` validate through it. Tools that
only carry a JSON schema get a pydantic model built from the supported
subset: string, integer, number, boolean, null, array, object and enum, with
``required`` and ``additionalProperties: false``.
"""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    create_model,
)

from edge_ai_dispatch.tools.types import JSONSchema, ToolDefinition

_SCALAR_TYPES: dict[str, Any] = {
    "string": StrictStr,
    "integer": StrictInt,
    "number": StrictInt | StrictFloat,
    "boolean": StrictBool,
    "null": type(None),
}


def _annotation(schema: Any, model_name: str) -> Any:
    # Boolean subschemas (`true`/`false`) are valid JSON Schema
    if not isinstance(schema, dict):
        return Any
    if "enum" in schema:
        return Literal[tuple(schema["enum"])]

    schema_type = schema.get("type")
    if isinstance(schema_type, list):
        members = [_annotation({**schema, "type": t}, model_name) for t in schema_type]
        return Union[tuple(members)]  # noqa: UP007
    if schema_type == "array":
        items = schema.get("items")
        if isinstance(items, dict) and items:
            return list[_annotation(items, f"{model_name}Item")]
        return list[Any]
    if schema_type == "object":
        if "properties" in schema:
            return model_from_schema(schema, model_name)
        return dict[str, Any]
    return _SCALAR_TYPES.get(schema_type, Any)


def model_from_schema(schema: JSONSchema, model_name: str = "Arguments") -> type[BaseModel]:
    """Build a pydantic model mirroring an object JSON schema.

    Scalars are strict, so ``"5"`` is not an integer. Property names are
    carried as aliases so any JSON key is allowed.
    """
    properties: dict[str, JSONSchema] = schema.get("properties") or {}
    required = set(schema.get("required") or ())

    fields: dict[str, Any] = {}
    for index, (prop_name, prop_schema) in enumerate(properties.items()):
        annotation = _annotation(prop_schema, f"{model_name}_{index}")
        if prop_name in required:
            fields[f"field_{index}"] = (annotation, Field(..., alias=prop_name))
        else:
            default = prop_schema.get("default") if isinstance(prop_schema, dict) else None
            fields[f"field_{index}"] = (annotation | None, Field(default, alias=prop_name))

    extra = "forbid" if schema.get("additionalProperties") is False else "allow"
    return create_model(
        model_name,
        __config__=ConfigDict(extra=extra),
        **fields,
    )


class ArgumentValidator:
    """Validates tool arguments, caching one generated model per tool."""

    def __init__(self) -> None:
        self._models: dict[int, tuple[ToolDefinition, type[BaseModel]]] = {}

    def _model_for(self, tool: ToolDefinition) -> type[BaseModel] | None:
        if tool.args_model is not None:
            return tool.args_model
        if not tool.parameters:
            return None
        cached = self._models.get(id(tool))
        if cached is None or cached[0] is not tool:
            cached = (tool, model_from_schema(tool.parameters, f"{tool.name}_arguments"))
            self._models[id(tool)] = cached
        return cached[1]

    def validate(self, tool: ToolDefinition, arguments: dict[str, Any]) -> Any:
        """Return the validated arguments.

        ``args_model`` tools receive the model instance, schema tools a dict.

        Raises:
            ValidationError: If the arguments do not match
        """
        model = self._model_for(tool)
        if model is None:
            return arguments
        validated = model.model_validate(arguments)
        if tool.args_model is not None:
            return validated
        return validated.model_dump(by_alias=True, exclude_unset=True)


def format_validation_error(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)
