# Copyright 2021-present Kensho Technologies, LLC.
"""Convert values coming from the host admin layer to the native form of their GraphQLType."""
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Callable, Mapping, Tuple, Type

# C-based module confuses pylint, which is why we disable the check below.
from ciso8601 import parse_datetime  # pylint: disable=no-name-in-module
from graphql import (
    GraphQLBoolean,
    GraphQLEnumType,
    GraphQLError,
    GraphQLFloat,
    GraphQLID,
    GraphQLInputType,
    GraphQLInt,
    GraphQLList,
    GraphQLNonNull,
    GraphQLScalarType,
    GraphQLString,
    Undefined,
    coerce_input_value,
    is_input_type,
)

from .exceptions import CoercionError


def _deserialize_id(value: Any) -> str:
    """Deserialize an ID, which is always sent as a string."""
    return str(value)


def _custom_boolean_deserialization(value: Any) -> bool:
    """Deserialize a boolean, allowing for common string or int representations."""
    true_values = [1, "1", "true", "True", True]
    false_values = [0, "0", "false", "False", False]
    if value in true_values:
        return True
    elif value in false_values:
        return False
    else:
        raise ValueError(
            f"Received unexpected GraphQLBoolean value {value} of type {type(value)}. Expected one "
            f"of: {true_values + false_values}."
        )


def _deserialize_iso_8601(value: Any) -> str:
    """Validate a date or datetime value, and return its ISO-8601 string representation.

    The remote API parses the value itself, so the string is passed through once ciso8601
    confirms that it is well-formed.
    """
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    parse_datetime(value)  # This will raise ValueError in case of bad ISO 8601 formatting.
    return value


_ALLOWED_SCALAR_TYPES: Mapping[str, Tuple[Type, ...]] = MappingProxyType(
    {
        "Date": (str, date),
        "DateTime": (str, date, datetime),
        GraphQLFloat.name: (str, float, int),
        GraphQLInt.name: (int, str),
        GraphQLString.name: (str,),
        GraphQLBoolean.name: (bool, int, str),
        GraphQLID.name: (int, str),
    }
)


_DESERIALIZATION_FUNCTIONS: Mapping[str, Callable[[Any], Any]] = MappingProxyType(
    {
        "Date": _deserialize_iso_8601,
        "DateTime": _deserialize_iso_8601,
        # Bypass the GraphQLFloat parser and allow strings as input, since admin forms
        # submit every value as a string.
        GraphQLFloat.name: float,
        # Bypass the GraphQLInt parser and allow strings as input, for the same reason.
        GraphQLInt.name: int,
        GraphQLString.name: GraphQLString.parse_value,
        # Bypass the GraphQLBoolean parser and allow some strings and ints as input.
        GraphQLBoolean.name: _custom_boolean_deserialization,
        GraphQLID.name: _deserialize_id,
    }
)


def deserialize_scalar_value(expected_type: GraphQLScalarType, value: Any) -> Any:
    """Convert a scalar value to the appropriate type for the given GraphQLScalarType.

    Below are examples of accepted encodings of the well-known types:
        Date: "2018-02-01", datetime.date(2018, 2, 1)
        DateTime: "2018-02-01T05:11:54", datetime.datetime(2018, 2, 1, 5, 11, 54)
        Float: 4.3, "5.0", 5
        Int: 4, "38"
        String: "Hello"
        Boolean: True, 1, "1", "True", "true"
        ID: "13d72846-1777-6c3a-5743-5d9ced3032ed", 13

    Other custom scalars are converted by their own parse_value function, which for schemas built
    from introspection passes the value through unchanged.

    Returns:
        a value of the type sent over the wire for the expected type:
            Date and DateTime: str in ISO-8601 format
            Float: float
            Int: int
            String: str
            Boolean: bool
            ID: str

    Raises:
        ValueError: if the value is not appropriate for the type.
    """
    # Explicitly disallow passing boolean values for non-boolean types.
    if isinstance(value, bool) and expected_type.name != GraphQLBoolean.name:
        raise ValueError(
            f"Cannot deserialize boolean value {value} to non-Boolean type {expected_type}."
        )

    # Explicitly disallow passing datetime objects as Date values. Python datetimes subclass date,
    # but sending one to a Date scalar would send its time components as well.
    if isinstance(value, datetime) and expected_type.name == "Date":
        raise ValueError(
            f"Cannot use the datetime object {value} as a GraphQL Date value. Please instead use "
            f"a date object or a string representing a date in ISO-8601 'YYYY-MM-DD' format."
        )

    allowed_python_types = _ALLOWED_SCALAR_TYPES.get(expected_type.name)
    if allowed_python_types is None:
        return expected_type.parse_value(value)

    if not isinstance(value, allowed_python_types):
        raise ValueError(
            f"{value} ({type(value)}) cannot be deserialized to GraphQL type {expected_type}."
        )
    return _DESERIALIZATION_FUNCTIONS[expected_type.name](value)


def deserialize_value(expected_type: GraphQLInputType, value: Any) -> Any:
    """Convert a value to the appropriate type for the given input GraphQLType.

    Accepted encodings include those described in deserialize_scalar_value, enum value names,
    lists of those for list types, and dicts for input object types.

    Args:
        expected_type: a GraphQL input type to which value should be converted.
        value: object that can be interpreted as being of expected_type.

    Returns:
        the value converted to the native form of the expected type

    Raises:
        CoercionError: if the value is not appropriate for the type, or the type is not an
                       input type.
    """
    if not is_input_type(expected_type):
        raise CoercionError(f"Type {expected_type} cannot be used as an input type.")

    stripped_type = expected_type
    while isinstance(stripped_type, GraphQLNonNull):
        stripped_type = stripped_type.of_type

    try:
        if isinstance(stripped_type, GraphQLList):
            if not isinstance(value, list):
                value = [value]
            return [deserialize_value(stripped_type.of_type, element) for element in value]
        elif isinstance(stripped_type, GraphQLScalarType):
            result = deserialize_scalar_value(stripped_type, value)
        elif isinstance(stripped_type, GraphQLEnumType):
            result = stripped_type.parse_value(value)
        else:
            result = coerce_input_value(value, stripped_type)
    except (ValueError, TypeError, GraphQLError) as e:
        raise CoercionError(f"Cannot coerce value {value!r} to {expected_type}: {e}") from e

    if result is Undefined:
        raise CoercionError(f"Cannot coerce value {value!r} to {expected_type}.")
    return result
