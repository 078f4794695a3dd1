# Copyright 2021-present Kensho Technologies, LLC.
"""Property metadata exposed to the host admin layer for each initialized resource."""
from dataclasses import dataclass, field, replace
from enum import Enum, unique
from types import MappingProxyType
from typing import Iterable, Iterator, List, Mapping, Optional, Tuple

from graphql import GraphQLNamedType


@unique
class PropertyType(str, Enum):
    """The kind of value a property holds, in the vocabulary of admin panels."""

    STRING = "string"
    NUMBER = "number"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    REFERENCE = "reference"

    # Opaque values: structured sub-objects, unknown custom scalars.
    MIXED = "mixed"


# Named GraphQL types whose values map directly onto an admin property kind.
# "Bool" is kept next to the standard "Boolean" since some APIs define it as a custom scalar.
_PROPERTY_TYPE_BY_GRAPHQL_TYPE_NAME: Mapping[str, PropertyType] = MappingProxyType(
    {
        "String": PropertyType.STRING,
        "ID": PropertyType.STRING,
        "Float": PropertyType.FLOAT,
        "Int": PropertyType.NUMBER,
        "Bool": PropertyType.BOOLEAN,
        "Boolean": PropertyType.BOOLEAN,
        "Date": PropertyType.DATETIME,
        "DateTime": PropertyType.DATETIME,
    }
)


def get_property_type_for_graphql_type(graphql_type: GraphQLNamedType) -> PropertyType:
    """Return the property kind for values of the given named type, MIXED if there is none."""
    return _PROPERTY_TYPE_BY_GRAPHQL_TYPE_NAME.get(graphql_type.name, PropertyType.MIXED)


@dataclass(frozen=True)
class GraphQLProperty:
    """Metadata of one field of a resource, as inferred from its sample document and schema."""

    # Full dotted response path of the field, e.g. "owner.address.city". Unique per resource.
    path: str

    type: PropertyType = PropertyType.MIXED
    is_id: bool = False
    is_array: bool = False
    is_required: bool = False
    is_sortable: bool = True

    # Legal values, if the field is an enum.
    enum_values: Optional[Tuple[str, ...]] = None

    # Name of the type (or of the resource) this property refers to, if it is a reference.
    reference: Optional[str] = None

    # Properties of the fields selected below this one, if it is a structured sub-object.
    sub_properties: Tuple["GraphQLProperty", ...] = field(default=())

    @property
    def name(self) -> str:
        """Return the last segment of the path, i.e. the field's own response key."""
        return self.path.rsplit(".", 1)[-1]

    def available_values(self) -> Optional[List[str]]:
        """Return the values the property can take, or None if it is not restricted."""
        if self.enum_values is None:
            return None
        return list(self.enum_values)

    def with_sub_properties(self, sub_properties: Iterable["GraphQLProperty"]) -> "GraphQLProperty":
        """Return a copy of this property with the given sub-properties attached."""
        return replace(self, sub_properties=tuple(sub_properties))


def iter_properties(properties: Iterable[GraphQLProperty]) -> Iterator[GraphQLProperty]:
    """Yield every property of the trees rooted at the given properties, depth-first."""
    for prop in properties:
        yield prop
        yield from iter_properties(prop.sub_properties)


def prune_opaque_leaves(properties: Iterable[GraphQLProperty]) -> List[GraphQLProperty]:
    """Drop properties that are MIXED but have no sub-properties, at every depth.

    Such properties have neither a usable scalar kind nor any structure to show.
    """
    pruned = []
    for prop in properties:
        sub_properties = prune_opaque_leaves(prop.sub_properties)
        if prop.type == PropertyType.MIXED and not sub_properties:
            continue
        if len(sub_properties) != len(prop.sub_properties):
            prop = prop.with_sub_properties(sub_properties)
        pruned.append(prop)
    return pruned
