# Copyright 2021-present Kensho Technologies, LLC.
"""Map the host's generic filters to typed filter criteria for the resource's queries."""
from dataclasses import dataclass
from enum import Enum, unique
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import funcy
from graphql import GraphQLID, GraphQLString, is_input_type, is_interface_type, is_object_type

from .deserialization import deserialize_value
from .exceptions import CoercionError
from .properties import GraphQLProperty, PropertyType, get_property_type_for_graphql_type
from .typedefs import ParamsType, TypeMap


@unique
class FilterOperation(str, Enum):
    """Comparison applied by a FieldFilter."""

    GTE = "GTE"
    LTE = "LTE"
    EQ = "EQ"
    MATCH = "MATCH"


@dataclass(frozen=True)
class FilterRange:
    """A from/to range given for a filtered property. Either bound may be empty."""

    from_: Any = None
    to: Any = None


@dataclass(frozen=True)
class FilterElement:
    """One entry of the host's generic filter: a property path and a value or range."""

    path: str
    value: Union[FilterRange, Any]


@dataclass(frozen=True)
class FieldFilter:
    """A typed filter criterion on one field, passed to the resource's count and find builders."""

    field: str
    operation: FilterOperation
    value: Any

    def as_input(self) -> Dict[str, Any]:
        """Return the criterion in the {field, is, to} shape of a filter input object."""
        return {"field": self.field, "is": self.operation.value, "to": self.value}


def _is_empty_bound(value: Any) -> bool:
    """Return True if the range bound was left unset."""
    return value is None or value == ""


def _get_filter_input_type(path: str, type_map: TypeMap) -> Any:
    """Return the input type with which values filtering the given path are coerced."""
    graphql_type = type_map.get(path)
    if is_object_type(graphql_type) or is_interface_type(graphql_type):
        # Structured fields are filtered by the identifier of the object they reference.
        graphql_type = GraphQLID
    if graphql_type is None or not is_input_type(graphql_type):
        raise CoercionError(f'Cannot get valid GraphQL type from "{path}": {graphql_type}')
    return graphql_type


def _get_property_kind(
    path: str, type_map: TypeMap, properties_by_path: Mapping[str, GraphQLProperty]
) -> PropertyType:
    """Return the kind of the filtered property, inferring it from its type if unknown."""
    prop = properties_by_path.get(path)
    if prop is not None:
        return prop.type
    return get_property_type_for_graphql_type(type_map[path])


def map_filter_element(
    element: FilterElement,
    type_map: TypeMap,
    properties_by_path: Optional[Mapping[str, GraphQLProperty]] = None,
) -> List[FieldFilter]:
    """Return the typed filter criteria equivalent to one generic filter element.

    A single value, or a range whose bounds coerce to the same value, produces one criterion:
    MATCH for string properties and EQ for all others. A true range produces a GTE criterion
    for its lower bound and an LTE criterion for its upper bound, leaving out empty bounds.

    Raises:
        CoercionError if the path has no usable input type, or a value cannot be coerced to it
    """
    if isinstance(element.value, FilterRange):
        lower, upper = element.value.from_, element.value.to
    else:
        lower = upper = element.value

    graphql_type = _get_filter_input_type(element.path, type_map)
    coerced_lower = None if _is_empty_bound(lower) else deserialize_value(graphql_type, lower)
    coerced_upper = None if _is_empty_bound(upper) else deserialize_value(graphql_type, upper)

    if coerced_lower is not None and coerced_lower == coerced_upper:
        property_kind = _get_property_kind(element.path, type_map, properties_by_path or {})
        if property_kind == PropertyType.STRING:
            operation = FilterOperation.MATCH
        else:
            operation = FilterOperation.EQ
        return [FieldFilter(element.path, operation, coerced_lower)]

    field_filters = []
    if coerced_lower is not None:
        field_filters.append(FieldFilter(element.path, FilterOperation.GTE, coerced_lower))
    if coerced_upper is not None:
        field_filters.append(FieldFilter(element.path, FilterOperation.LTE, coerced_upper))
    return field_filters


def map_filter(
    elements: Iterable[FilterElement],
    type_map: TypeMap,
    properties_by_path: Optional[Mapping[str, GraphQLProperty]] = None,
) -> List[FieldFilter]:
    """Map the host's generic filter elements to typed filter criteria, in order.

    Args:
        elements: the generic filter, one element per filtered property
        type_map: path -> named type map of the resource, as produced by infer_properties()
        properties_by_path: path -> property of the resource, used to choose between MATCH and
                            EQ for single values. If a path is missing, its kind is derived from
                            its type.

    Returns:
        list of FieldFilter, as described in map_filter_element()

    Raises:
        CoercionError if some element cannot be mapped
    """
    return funcy.lcat(
        map_filter_element(element, type_map, properties_by_path) for element in elements
    )


# Matches the array index segments of a flat record key, e.g. ".0" in "tags.0".
_INDEX_SEGMENT_PATTERN = re.compile(r"\.\d+(?=\.|$)")


def coerce_params(params: ParamsType, type_map: TypeMap) -> ParamsType:
    """Coerce the scalar values of a flat record to the native form of their field types.

    Keys are looked up in the type map with their array index segments removed, so that
    "tags.0" is coerced with the type of "tags". Keys without a scalar or enum type, and None
    values, are passed through unchanged. Empty strings given for non-string fields become None.

    Raises:
        CoercionError if a value cannot be coerced to its field's type
    """
    coerced = {}
    for key, value in params.items():
        graphql_type = type_map.get(_INDEX_SEGMENT_PATTERN.sub("", key))
        if value is None or graphql_type is None or not is_input_type(graphql_type):
            coerced[key] = value
        elif value == "" and graphql_type.name not in (GraphQLString.name, GraphQLID.name):
            coerced[key] = None
        else:
            coerced[key] = deserialize_value(graphql_type, value)
    return coerced
