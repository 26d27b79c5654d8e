"""
JSON-ready dictionaries for result objects.

Every dataclass is written with a `_type` marker naming its class in
`data_types`, enums are written as their values and tuples as lists.
`deserialize_regions` reverses this, using the field annotations to turn
lists back into tuples and values back into enum members.
"""

import functools
import types
import typing
from dataclasses import fields, is_dataclass
from enum import Enum

_TYPE_KEY = "_type"


def _to_json(value: typing.Any) -> typing.Any:
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        payload = {_TYPE_KEY: type(value).__name__}
        payload.update(
            (item.name, _to_json(getattr(value, item.name))) for item in fields(value)
        )
        return payload
    if isinstance(value, (list, tuple)):
        return [_to_json(item) for item in value]
    return value


def serialize_regions(value: typing.Any) -> dict:
    """
    Convert a result object (DocumentRegions, PageRegions, NormalizedRegion,
    TextSpan, ...) into a JSON-ready dictionary.
    """
    payload = _to_json(value)
    return payload if isinstance(payload, dict) else {"value": payload}


@functools.lru_cache(maxsize=1)
def _get_type_registry() -> dict[str, type]:
    """Build the name -> dataclass registry once, on first use."""
    from pdf2regions.locator import data_types

    return {
        name: obj
        for name, obj in vars(data_types).items()
        if isinstance(obj, type) and is_dataclass(obj)
    }


def _without_none(annotation: typing.Any) -> typing.Any:
    """X for Optional[X] / X | None, otherwise the annotation unchanged."""
    if typing.get_origin(annotation) in (typing.Union, types.UnionType):
        members = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(members) == 1:
            return members[0]
    return annotation


def _tuple_item_types(annotation: typing.Any, length: int) -> typing.Sequence[typing.Any]:
    args = typing.get_args(annotation)
    if len(args) == 2 and args[1] is Ellipsis:
        return [args[0]] * length
    if len(args) == length:
        return args
    return [typing.Any] * length


def _from_json(value: typing.Any, annotation: typing.Any) -> typing.Any:
    if value is None:
        return None
    annotation = _without_none(annotation)

    if isinstance(value, dict):
        return _rebuild(value, annotation if is_dataclass(annotation) else None)

    if isinstance(value, list):
        origin = typing.get_origin(annotation)
        if origin is tuple:
            item_types = _tuple_item_types(annotation, len(value))
            return tuple(_from_json(item, tp) for item, tp in zip(value, item_types))
        if origin is list:
            (item_type,) = typing.get_args(annotation) or (typing.Any,)
            return [_from_json(item, item_type) for item in value]
        return value

    if isinstance(annotation, type) and issubclass(annotation, Enum):
        return annotation(value)
    return value


def _rebuild(data: dict, fallback: typing.Optional[type] = None) -> typing.Any:
    cls = _get_type_registry().get(data.get(_TYPE_KEY), fallback)
    if cls is None:
        return data

    hints = typing.get_type_hints(cls)
    kwargs = {
        item.name: _from_json(data[item.name], hints.get(item.name, typing.Any))
        for item in fields(cls)
        if item.name in data
    }
    return cls(**kwargs)


def deserialize_regions(data: dict) -> typing.Any:
    """
    Rebuild a result object from the output of serialize_regions().

    Raises:
        ValueError: the input is not a dictionary carrying a type marker
    """
    if not isinstance(data, dict):
        raise ValueError("Input must be a dictionary")

    if _TYPE_KEY not in data:
        raise ValueError(
            f"Input dictionary must contain '{_TYPE_KEY}' key for deserialization"
        )

    return _rebuild(data)
