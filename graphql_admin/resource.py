# Copyright 2021-present Kensho Technologies, LLC.
"""Resource descriptors, and the CRUD interface that an initialized resource offers the host."""
import asyncio
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Collection,
    Dict,
    Generic,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    TypeVar,
    Union,
)

from graphql.language.ast import DocumentNode
from graphql.language.printer import print_ast

from .exceptions import NotEditableError
from .filters import FieldFilter, FilterElement, coerce_params, map_filter
from .params import deflate_params, deflate_reference, inflate_params
from .properties import GraphQLProperty, PropertyType, iter_properties
from .typedefs import ParamsType, SortDirection, TypeMap


if TYPE_CHECKING:
    from .connection import GraphQLConnection


T = TypeVar("T")

RecordId = Union[str, int]


@dataclass(frozen=True)
class QueryMapping(Generic[T]):
    """A GraphQL document with its variables, and how to extract the result from its data."""

    query: Union[str, DocumentNode]
    parse_result: Callable[[Dict[str, Any]], T]
    variables: Optional[Dict[str, Any]] = None

    def get_query_string(self) -> str:
        """Return the document as text, printing it if it was given as an AST."""
        if isinstance(self.query, str):
            return self.query
        return print_ast(self.query)


@dataclass(frozen=True)
class SortOptions:
    """Sorting requested by the host for a find call."""

    sort_by: Optional[str] = None
    direction: SortDirection = "asc"


@dataclass(frozen=True)
class FindOptions:
    """Pagination and sorting requested by the host for a find call."""

    limit: Optional[int] = None
    offset: Optional[int] = None
    sort: Optional[SortOptions] = None


@dataclass(frozen=True)
class GraphQLResource:
    """Declarative description of how a resource is read from and written to a GraphQL API.

    The builder functions produce the QueryMapping to execute for each operation. The find_one
    builder also defines the shape of the resource: the document it returns is walked against
    the remote schema to infer the resource's properties.

    Example:
        GraphQLResource(
            resource_id="Thing",
            id_field="ID",
            count=lambda filters: QueryMapping(
                query="query ($filter: [FilterInput!]) { thingCount(filter: $filter) }",
                variables={"filter": [f.as_input() for f in filters]},
                parse_result=lambda data: data["thingCount"],
            ),
            find=...,
            find_one=lambda ID: QueryMapping(
                query="query ($ID: ID!) { thing(ID: $ID) { ID name } }",
                variables={"ID": ID},
                parse_result=lambda data: data["thing"],
            ),
        )
    """

    resource_id: str

    # Name of the identifier field of the API's objects, e.g. "ID" or "id". Objects holding only
    # this field are collapsed to the identifier value in flat records.
    id_field: str

    count: Callable[[List[FieldFilter]], QueryMapping[int]]
    find: Callable[[List[FieldFilter], FindOptions], QueryMapping[List[ParamsType]]]
    find_one: Callable[[RecordId], QueryMapping[Optional[ParamsType]]]

    # Mutations. A resource without them is read-only.
    create: Optional[Callable[[ParamsType], QueryMapping[ParamsType]]] = None
    update: Optional[Callable[[RecordId, ParamsType], QueryMapping[ParamsType]]] = None
    delete: Optional[Callable[[RecordId], QueryMapping[Any]]] = None

    # Paths of the sortable properties. If None, all properties except references are sortable.
    sortable_fields: Optional[Collection[str]] = None

    # Property path -> name of the referenced resource, for references that cannot be inferred.
    reference_fields: Mapping[str, str] = field(default_factory=dict)

    # Property path -> kind, overriding the kind inferred from the field's type.
    field_types: Mapping[str, PropertyType] = field(default_factory=dict)

    # Keep sub-property trees as they are, including identifier-only ones, and hand nested
    # results to the host instead of flattening them to dotted-path records.
    make_sub_properties: bool = False


class GraphQLResourceAdapter:
    """An initialized resource: its inferred properties, and its CRUD operations.

    Instances are created by GraphQLConnection.init(), and are read-only afterwards.
    """

    def __init__(
        self,
        resource: GraphQLResource,
        connection: "GraphQLConnection",
        properties: Sequence[GraphQLProperty],
        type_map: TypeMap,
    ) -> None:
        """Bind a resource to its connection and to the metadata inferred for it."""
        self.resource = resource
        self.connection = connection
        self.type_map: Mapping[str, Any] = MappingProxyType(dict(type_map))
        self._properties = tuple(properties)
        self._properties_by_path = {prop.path: prop for prop in iter_properties(self._properties)}

    def resource_id(self) -> str:
        """Return the id of the resource."""
        return self.resource.resource_id

    def database_name(self) -> str:
        """Return the display name of the connection."""
        return self.connection.name

    def database_type(self) -> str:
        """Return the kind of data source, always "graphql"."""
        return "graphql"

    def properties(self) -> List[GraphQLProperty]:
        """Return the root properties of the resource, in selection order."""
        return list(self._properties)

    def property(self, path: str) -> Optional[GraphQLProperty]:
        """Return the property at the given path, at any depth, or None if there is none."""
        return self._properties_by_path.get(path)

    def map_filter(self, filters: Iterable[FilterElement]) -> List[FieldFilter]:
        """Map the host's generic filter to typed filter criteria for this resource."""
        return map_filter(filters, self.type_map, self._properties_by_path)

    async def count(self, filters: Iterable[FilterElement]) -> int:
        """Return the number of records matching the filter."""
        with self.connection.reporting():
            mapping = self.resource.count(self.map_filter(filters))
        return await self._execute_mapping(mapping)

    async def find(
        self, filters: Iterable[FilterElement], options: Optional[FindOptions] = None
    ) -> List[ParamsType]:
        """Return the records matching the filter, paginated and sorted as requested."""
        with self.connection.reporting():
            mapping = self.resource.find(self.map_filter(filters), options or FindOptions())
        return await self._execute_mapping(mapping)

    async def find_one(self, record_id: Any) -> Optional[ParamsType]:
        """Return the record with the given identifier, or None if there is none."""
        with self.connection.reporting():
            mapping = self.resource.find_one(deflate_reference(record_id))
        result = await self._execute_mapping(mapping)
        return result or None

    async def find_many(self, record_ids: Iterable[Any]) -> List[ParamsType]:
        """Return the records with the given identifiers, leaving out the ones that are missing."""
        resolved = await asyncio.gather(*(self.find_one(record_id) for record_id in record_ids))
        return [record for record in resolved if record is not None]

    async def create(self, params: ParamsType) -> ParamsType:
        """Create a record from flat params, and return the created record."""
        with self.connection.reporting():
            if self.resource.create is None:
                raise NotEditableError(f'Resource "{self.resource_id()}" is not editable.')
            mapping = self.resource.create(self._prepare_params(params))
        return await self._execute_mapping(mapping)

    async def update(self, record_id: Any, params: ParamsType) -> ParamsType:
        """Update the record with the given identifier from flat params, and return it."""
        with self.connection.reporting():
            if self.resource.update is None:
                raise NotEditableError(f'Resource "{self.resource_id()}" is not editable.')
            mapping = self.resource.update(
                deflate_reference(record_id), self._prepare_params(params)
            )
        return await self._execute_mapping(mapping)

    async def delete(self, record_id: Any) -> None:
        """Delete the record with the given identifier."""
        with self.connection.reporting():
            if self.resource.delete is None:
                raise NotEditableError(f'Resource "{self.resource_id()}" is not editable.')
            mapping = self.resource.delete(deflate_reference(record_id))
        await self._execute_mapping(mapping)

    def _prepare_params(self, params: ParamsType) -> ParamsType:
        """Coerce the values of flat params and nest them the way GraphQL variables are."""
        return inflate_params(coerce_params(params, self.type_map))

    async def _execute_mapping(self, mapping: QueryMapping[T]) -> Any:
        """Execute the mapping's document, and extract its result in the host's record form."""
        with self.connection.reporting():
            query_string = mapping.get_query_string()
        data = await self.connection.request(query_string, mapping.variables)

        with self.connection.reporting():
            parsed = mapping.parse_result(data)
            if self.resource.make_sub_properties:
                return parsed
            if isinstance(parsed, list):
                return [deflate_params(record, self.resource.id_field) for record in parsed]
            return deflate_params(parsed, self.resource.id_field)
