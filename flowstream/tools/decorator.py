"""
flowstream Tool Decorator - Turn a typed function into a Tool

The input schema comes from the signature: type hints pick the JSON type,
``Annotated[T, "text"]`` or an ``Args:`` section in the docstring supplies the
description, and parameters without a default are required unless they are
Optional.

Usage::

    from typing import Annotated
    from flowstream.tools import tool

    @tool
    async def search_docs(
        query: Annotated[str, "Search keywords"],
        limit: int = 5,
    ) -> str:
        \"\"\"Search the documentation index.

        Args:
            limit: Max results to return
        \"\"\"
        ...

    search_docs.input_schema
    # {"type": "object",
    #  "properties": {"query": {...}, "limit": {"type": "integer", "description": ...}},
    #  "required": ["query"]}
"""

from __future__ import annotations

import enum
import inspect
import re
from typing import (
    Annotated,
    Any,
    Callable,
    Dict,
    List,
    Literal,
    Optional,
    Tuple,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from .models import Tool

# Plain Python types and the JSON type they map to
JSON_TYPES: List[Tuple[type, str]] = [
    (str, "string"),
    (bool, "boolean"),
    (int, "integer"),
    (float, "number"),
    (dict, "object"),
]

_SKIPPED_KINDS = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
_ARG_LINE = re.compile(r"^\s*(\w+)\s*(?:\([^)]*\))?\s*:\s*(.+)$")


def split_annotated(annotation: Any) -> Tuple[Any, Optional[str]]:
    """Return ``(T, description)`` for ``Annotated[T, ...]``, else ``(annotation, None)``"""
    if get_origin(annotation) is not Annotated:
        return annotation, None
    base, *extras = get_args(annotation)
    text = next((e for e in extras if isinstance(e, str)), None)
    return base, text


def strip_none(annotation: Any) -> Tuple[Any, bool]:
    """
    Drop ``None`` from a union.

    Returns the remaining type (unchanged for multi-member unions) and whether
    None was part of it. Handles both ``Optional[X]`` and ``X | None``.
    """
    origin = get_origin(annotation)
    if origin is not Union and getattr(origin, "__name__", None) != "UnionType":
        return annotation, False

    members = get_args(annotation)
    rest = [m for m in members if m is not type(None)]
    nullable = len(rest) < len(members)
    if len(rest) == 1:
        return rest[0], nullable
    return annotation, nullable


def schema_for(annotation: Any) -> Dict[str, Any]:
    """JSON Schema for a single annotation; unknown types become strings"""
    annotation, _ = split_annotated(annotation)
    annotation, _ = strip_none(annotation)
    origin = get_origin(annotation)

    if origin is Literal:
        values = list(get_args(annotation))
        schema = schema_for(type(values[0])) if values else {"type": "string"}
        schema["enum"] = values
        return schema

    if inspect.isclass(annotation) and issubclass(annotation, enum.Enum):
        values = [member.value for member in annotation]
        schema = schema_for(type(values[0])) if values else {"type": "string"}
        schema["enum"] = values
        return schema

    if annotation in (list, tuple, set) or origin in (list, tuple, set):
        item_args = get_args(annotation)
        array: Dict[str, Any] = {"type": "array"}
        if item_args and item_args[0] is not Ellipsis:
            array["items"] = schema_for(item_args[0])
        return array

    if origin is dict:
        return {"type": "object"}

    for py_type, json_type in JSON_TYPES:
        if annotation is py_type:
            return {"type": json_type}

    return {"type": "string"}


def docstring_args(doc: str) -> Dict[str, str]:
    """Parameter descriptions from a Google-style ``Args:`` section"""
    found: Dict[str, str] = {}
    in_args = False
    for line in doc.splitlines():
        stripped = line.strip()
        if stripped in ("Args:", "Arguments:", "Parameters:"):
            in_args = True
            continue
        if not in_args:
            continue
        if not stripped:
            continue
        if stripped.endswith(":") and not line.startswith((" ", "\t")):
            break
        match = _ARG_LINE.match(line)
        if match:
            found[match.group(1)] = match.group(2).strip()
    return found


def input_schema_from_signature(func: Callable) -> Dict[str, Any]:
    """Object schema describing the keyword arguments of *func*"""
    try:
        hints = get_type_hints(func, include_extras=True)
    except (NameError, TypeError):
        hints = {}
    doc_descriptions = docstring_args(inspect.getdoc(func) or "")

    properties: Dict[str, Any] = {}
    required: List[str] = []

    for param in inspect.signature(func).parameters.values():
        if param.kind in _SKIPPED_KINDS:
            continue

        annotation = hints.get(param.name, param.annotation)
        if annotation is inspect.Parameter.empty:
            annotation = str

        prop = schema_for(annotation)
        base, text = split_annotated(annotation)
        text = text or doc_descriptions.get(param.name)
        if text:
            prop["description"] = text
        properties[param.name] = prop

        _, nullable = strip_none(base)
        if param.default is inspect.Parameter.empty and not nullable:
            required.append(param.name)

    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def _input_handler(func: Callable) -> Callable[[Dict[str, Any]], Any]:
    # Input keys outside the signature are dropped; absent ones use defaults
    names = {
        param.name
        for param in inspect.signature(func).parameters.values()
        if param.kind not in _SKIPPED_KINDS
    }

    def handler(tool_input: Dict[str, Any]) -> Any:
        return func(**{k: v for k, v in tool_input.items() if k in names})

    return handler


def tool(
    func: Optional[Callable] = None,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> Any:
    """
    Replace a function with a :class:`Tool` built from its signature.

    Works bare (``@tool``) or with options (``@tool(name="...")``). Sync and
    async functions are both accepted. Without an explicit description the
    first docstring line is used, then the tool name.
    """

    def wrap(fn: Callable) -> Tool:
        doc = inspect.getdoc(fn) or ""
        summary = doc.strip().splitlines()[0].strip() if doc.strip() else ""
        tool_name = name or fn.__name__
        return Tool(
            name=tool_name,
            description=description or summary or tool_name,
            handler=_input_handler(fn),
            input_schema=input_schema_from_signature(fn),
        )

    return wrap(func) if func is not None else wrap
