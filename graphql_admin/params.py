# Copyright 2021-present Kensho Technologies, LLC.
"""Convert records between the host's flat dotted-path form and GraphQL's nested form.

The host admin layer addresses every value of a record by a flat key such as "address.city" or
"tags.0", while GraphQL variables and results nest objects and lists:

    {"address.city": "Oslo", "tags.0": "a", "tags.1": "b"}
    <->
    {"address": {"city": "Oslo"}, "tags": ["a", "b"]}
"""
from typing import Any, Dict, List, Union

from .exceptions import CoercionError
from .global_utils import join_path, split_path
from .typedefs import ParamsType


_Container = Union[Dict[str, Any], List[Any]]


def _is_index_segment(segment: str) -> bool:
    """Return True if the path segment addresses a list position."""
    return segment.isdecimal() and segment.isascii()


def _new_container_for(segment: str) -> _Container:
    """Return an empty container able to hold the given child segment."""
    if _is_index_segment(segment):
        return []
    return {}


def _set_in_container(container: _Container, segment: str, value: Any) -> None:
    """Set the value of a segment of the container, growing a list if needed."""
    if isinstance(container, list):
        index = int(segment)
        if index >= len(container):
            container.extend([None] * (index + 1 - len(container)))
        container[index] = value
    else:
        container[segment] = value


def _get_from_container(container: _Container, segment: str) -> Any:
    """Return the value of a segment of the container, or None if it is unset."""
    if isinstance(container, list):
        index = int(segment)
        return container[index] if index < len(container) else None
    return container.get(segment)


def inflate_params(params: ParamsType) -> ParamsType:
    """Rebuild the nested record described by a flat record with dotted-path keys.

    A purely numeric path segment makes its parent a list rather than an object. The list is
    sized to the largest index set, plus one, with unset positions left as None:

        {"array.0": "zero", "array.3": "three"} -> {"array": ["zero", None, None, "three"]}

    Raises:
        CoercionError if keys address the same path both as a list and as an object, e.g.
        "tags.0" and "tags.name"
    """
    record: Dict[str, Any] = {}

    for path, value in params.items():
        steps = split_path(path)
        container: _Container = record
        for depth, (step, next_step) in enumerate(zip(steps, steps[1:])):
            child = _get_from_container(container, step)
            if not isinstance(child, (dict, list)):
                child = _new_container_for(next_step)
                _set_in_container(container, step, child)
            elif isinstance(child, list) != _is_index_segment(next_step):
                raise CoercionError(
                    f'Key "{path}" addresses "{join_path(*steps[: depth + 1])}" as '
                    f"both a list and an object."
                )
            container = child
        _set_in_container(container, steps[-1], value)

    return record


def _deflate_items(items: Any, id_field: str) -> ParamsType:
    """Flatten the (key, value) pairs of a dict or list into a flat record."""
    record: Dict[str, Any] = {}
    for key, param in items:
        if isinstance(param, (dict, list)) and param:
            deflated = _deflate_container(param, id_field)
            if isinstance(param, dict) and list(deflated.keys()) == [id_field]:
                # Reference shorthand: an object holding only an identifier is the identifier.
                record[key] = deflated[id_field]
            else:
                for sub_key, sub_value in deflated.items():
                    record[join_path(key, sub_key)] = sub_value
        else:
            record[key] = param
    return record


def _deflate_container(container: _Container, id_field: str) -> ParamsType:
    """Flatten a non-empty dict or list into a flat record relative to it."""
    if isinstance(container, list):
        # None entries are the unset positions of a sparse list, and are not keys of their own.
        indexed_elements = (
            (str(index), element) for index, element in enumerate(container) if element is not None
        )
        return _deflate_items(indexed_elements, id_field)
    return _deflate_items(container.items(), id_field)


def deflate_params(params: Any, id_field: str) -> Any:
    """Flatten a nested record into dotted-path keys, the inverse of inflate_params().

    Objects and lists become path prefixes of their values. An object whose only field is the
    identifier field collapses to the identifier value itself, since that is how references are
    represented in flat records:

        {"c": {"d": {"e": "eee"}}} -> {"c.d.e": "eee"}
        {"child": {"ID": "i-d"}} -> {"child": "i-d"} (with id_field="ID")

    Empty objects and lists are kept as values, and values that are not dicts are returned as-is.
    None list entries are treated as the unset positions of a sparse list and produce no key, so
    deflate_params(inflate_params(flat)) == flat holds unless flat sets a list position to None:

        {"tags.0": None} -> inflate -> {"tags": [None]} -> deflate -> {}

    Args:
        params: nested record, usually as parsed from a GraphQL result
        id_field: name of the identifier field of the API, e.g. "ID" or "id"

    Returns:
        flat record
    """
    if not isinstance(params, dict):
        return params
    return _deflate_items(params.items(), id_field)


def deflate_reference(reference: Any) -> str:
    """Return the identifier of a reference, given either as a value or as a one-field object."""
    if isinstance(reference, dict) and len(reference) == 1:
        return str(next(iter(reference.values())))
    return str(reference)
