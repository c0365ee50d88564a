"""
Format conversion functions between chat-completion messages and Gemini content.
This module handles message, system instruction and tool schema transcoding.
"""

import json
import logging
from typing import Any

from google.genai import types

from .errors import (
    InvalidToolSchema,
    MalformedFunctionCallArguments,
    UnsupportedMessageRole,
)
from .types import (
    Constants,
    ConversationMessage,
    ModelDefaults,
    ToolDeclaration,
)

logger = logging.getLogger(__name__)

# Two characters: a backslash followed by "n"
ESCAPED_NEWLINE = "\\n"


def try_parse_json(text: str | None) -> Any:
    """Parse JSON when possible, otherwise hand back the raw text."""
    if not text:
        return ""
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        logger.debug(f"Function content is not JSON, passing through: {text[:100]}")
        return text


def replace_newlines_in_object(obj: Any) -> Any:
    """Recursively replace every escaped newline in the strings of a JSON value."""
    if isinstance(obj, str):
        return obj.replace(ESCAPED_NEWLINE, "\n")
    elif isinstance(obj, list):
        return [replace_newlines_in_object(item) for item in obj]
    elif isinstance(obj, dict):
        return {key: replace_newlines_in_object(value) for key, value in obj.items()}
    return obj


def _parse_function_call_arguments(name: str, arguments: str) -> dict[str, Any]:
    try:
        args = json.loads(arguments)
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedFunctionCallArguments(name, arguments, str(e)) from e
    if not isinstance(args, dict):
        raise MalformedFunctionCallArguments(
            name, arguments, f"expected a JSON object, got {type(args).__name__}"
        )
    return args


def transform_message(message: ConversationMessage) -> types.Content:
    """Convert a single chat-completion message into Gemini content."""
    if message.role == Constants.ROLE_USER:
        return types.Content(
            role=Constants.ROLE_USER,
            parts=[types.Part(text=message.content)],
        )
    elif message.role == Constants.ROLE_ASSISTANT:
        if message.function_call:
            call = message.function_call
            args = _parse_function_call_arguments(call.name, call.arguments)
            return types.Content(
                role=Constants.ROLE_MODEL,
                parts=[
                    types.Part(function_call=types.FunctionCall(name=call.name, args=args))
                ],
            )
        # Only the first escaped newline is normalized here
        return types.Content(
            role=Constants.ROLE_MODEL,
            parts=[types.Part(text=message.content.replace(ESCAPED_NEWLINE, "\n", 1))],
        )
    elif message.role == Constants.ROLE_FUNCTION:
        return types.Content(
            role=Constants.ROLE_FUNCTION,
            parts=[
                types.Part(
                    function_response=types.FunctionResponse(
                        name=message.name,
                        response={
                            "name": message.name,
                            "content": try_parse_json(message.content),
                        },
                    )
                )
            ],
        )
    elif message.role == Constants.ROLE_SYSTEM:
        # Chat sessions have no system role, fold it into a user turn
        return types.Content(
            role=Constants.ROLE_USER,
            parts=[types.Part(text=Constants.SYSTEM_MESSAGE_PREFIX + message.content)],
        )

    raise UnsupportedMessageRole(message.role)


def transform_messages(messages: list[ConversationMessage]) -> list[types.Content]:
    """Convert a message history, dropping messages with unrecognized roles."""
    contents = []
    for message in messages:
        if message.role not in Constants.SUPPORTED_ROLES:
            logger.debug(f"Skipping message with unsupported role: {message.role}")
            continue
        contents.append(transform_message(message))
    return contents


def is_baseline_model(model_name: str) -> bool:
    """First generation gemini-pro cannot take a system instruction."""
    return model_name in ModelDefaults.BASELINE_MODELS


def build_system_instruction(system_message: str) -> types.Content:
    return types.Content(
        role=Constants.ROLE_USER, parts=[types.Part(text=system_message)]
    )


def build_chat_history(
    history: list[types.Content], system_message: str, model_name: str
) -> tuple[list[types.Content], types.Content | None]:
    """Place the system message for the target model.

    Returns:
        tuple: (chat_history, system_instruction)
    """
    # An empty system message is not placed at all, neither as a history
    # turn nor as system_instruction: Gemini rejects empty text parts.
    if not system_message:
        return list(history), None

    instruction = build_system_instruction(system_message)
    if is_baseline_model(model_name):
        logger.debug(
            f"Model {model_name} has no system instruction support, appending to history"
        )
        return [*history, instruction], None
    return list(history), instruction


def uppercase_schema_types(schema: Any) -> Any:
    """Upper-case every ``type`` in a JSON schema, in place.

    Walks ``properties`` and ``items`` to any depth. Keys that are missing
    at a level are skipped.
    """
    if not isinstance(schema, dict):
        return schema

    if isinstance(schema.get("type"), str):
        schema["type"] = schema["type"].upper()

    properties = schema.get("properties")
    if isinstance(properties, dict):
        for prop in properties.values():
            uppercase_schema_types(prop)

    items = schema.get("items")
    if isinstance(items, dict):
        uppercase_schema_types(items)

    return schema


# JSON schema keywords copied onto the native Schema field of the same meaning
SCHEMA_FIELDS = {
    "description": "description",
    "title": "title",
    "default": "default",
    "example": "example",
    "format": "format",
    "pattern": "pattern",
    "nullable": "nullable",
    "required": "required",
    "minimum": "minimum",
    "maximum": "maximum",
    "minLength": "min_length",
    "maxLength": "max_length",
    "minItems": "min_items",
    "maxItems": "max_items",
    "minProperties": "min_properties",
    "maxProperties": "max_properties",
}

# Consumed by the conversion itself, not copied
HANDLED_KEYWORDS = {
    "type",
    "properties",
    "items",
    "enum",
    "const",
    "anyOf",
    "oneOf",
    "$ref",
    "$defs",
    "definitions",
}


def _schema_type(name: Any) -> types.Type:
    return types.Type(str(name).upper())


def _enum_value(value: Any) -> str:
    # Gemini enums are strings only
    return value if isinstance(value, str) else json.dumps(value)


def _is_null_schema(schema: Any) -> bool:
    return (
        isinstance(schema, dict)
        and set(schema) == {"type"}
        and str(schema["type"]).upper() == "NULL"
    )


def _resolve_ref(ref: Any, definitions: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    for prefix in ("#/$defs/", "#/definitions/"):
        if isinstance(ref, str) and ref.startswith(prefix):
            name = ref[len(prefix) :]
            if isinstance(definitions.get(name), dict):
                return name, definitions[name]
    raise ValueError(f"cannot resolve $ref {ref!r}")


def to_gemini_schema(
    schema: Any,
    definitions: dict[str, Any] | None = None,
    _resolving: tuple[str, ...] = (),
) -> types.Schema:
    """Convert a JSON schema dict into the native Gemini ``types.Schema``.

    Type lists become a single type plus ``nullable``, ``anyOf``/``oneOf``
    become ``any_of``, enum and const values are turned into strings and
    local ``$ref``s are inlined. Keywords with no native counterpart are
    dropped. Raises ``ValueError`` or ``TypeError`` when the schema cannot
    be expressed.
    """
    if not isinstance(schema, dict):
        raise TypeError(f"expected a schema object, got {type(schema).__name__}")

    if definitions is None:
        definitions = {**schema.get("definitions", {}), **schema.get("$defs", {})}

    if "$ref" in schema:
        name, target = _resolve_ref(schema["$ref"], definitions)
        if name in _resolving:
            raise ValueError(f"recursive $ref {schema['$ref']!r} is not supported")
        # Sibling keywords such as description override the referenced schema
        merged = {**target, **{k: v for k, v in schema.items() if k != "$ref"}}
        return to_gemini_schema(merged, definitions, (*_resolving, name))

    fields: dict[str, Any] = {}
    variants: list[types.Schema] = []

    schema_type = schema.get("type")
    if schema_type is not None:
        type_names = schema_type if isinstance(schema_type, list) else [schema_type]
        non_null = [t for t in type_names if str(t).upper() != "NULL"]
        if len(non_null) < len(type_names):
            fields["nullable"] = True
        if len(non_null) == 1:
            fields["type"] = _schema_type(non_null[0])
        else:
            variants.extend(types.Schema(type=_schema_type(t)) for t in non_null)

    for keyword in ("anyOf", "oneOf"):
        for variant in schema.get(keyword) or []:
            if _is_null_schema(variant):
                fields["nullable"] = True
            else:
                variants.append(to_gemini_schema(variant, definitions, _resolving))
    if variants:
        fields["any_of"] = variants

    properties = schema.get("properties")
    if isinstance(properties, dict):
        fields["properties"] = {
            name: to_gemini_schema(prop, definitions, _resolving)
            for name, prop in properties.items()
        }

    items = schema.get("items")
    if isinstance(items, dict):
        fields["items"] = to_gemini_schema(items, definitions, _resolving)

    if "enum" in schema:
        fields["enum"] = [_enum_value(value) for value in schema["enum"]]
    elif "const" in schema:
        fields["enum"] = [_enum_value(schema["const"])]

    for key, value in schema.items():
        if key in SCHEMA_FIELDS:
            fields.setdefault(SCHEMA_FIELDS[key], value)
        elif key not in HANDLED_KEYWORDS:
            logger.debug(f"Dropping schema keyword '{key}' with no Gemini equivalent")

    return types.Schema(**fields)


def transform_tool(tool: ToolDeclaration) -> types.Tool:
    """Convert an OpenAI function tool into a Gemini tool declaration."""
    function = tool.function
    parameters = uppercase_schema_types(function.parameters)

    try:
        declaration = types.FunctionDeclaration(
            name=function.name,
            description=function.description,
            parameters=to_gemini_schema(parameters) if parameters else None,
        )
    except (TypeError, ValueError) as e:
        raise InvalidToolSchema(function.name, str(e)) from e

    logger.debug(f"Converted tool declaration: {function.name}")
    return types.Tool(function_declarations=[declaration])


def transform_tools(tools: list[ToolDeclaration]) -> list[types.Tool]:
    return [transform_tool(tool) for tool in tools]
