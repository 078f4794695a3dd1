# Copyright 2021-present Kensho Technologies, LLC.
from typing import Any, List, Optional, Tuple
import unittest

from graphql import parse, print_ast
import httpx

from ..connection import GraphQLConnection
from ..exceptions import (
    CoercionError,
    InvalidDocumentError,
    NotEditableError,
    RemoteGraphQLError,
    ResourceNotInitializedError,
    SchemaError,
    SchemaMismatchError,
    TransportError,
)
from ..filters import FilterElement, FilterRange
from ..properties import PropertyType
from ..resource import FindOptions, QueryMapping, SortOptions
from ..schema import INTROSPECTION_QUERY
from ..typedefs import GraphQLErrorPayloads
from .test_helpers import (
    THING_COUNT_QUERY,
    THING_QUERY,
    MockGraphQLEndpoint,
    get_sample_query_resource,
    get_test_connection,
    get_thing_resource,
)


THING_RESULT = {
    "ID": "1",
    "name": "first",
    "tags": ["a", "b"],
    "labels": None,
    "status": "ACTIVE",
    "price": 9.5,
    "quantity": 3,
    "active": True,
    "createdAt": "2021-01-01T00:00:00",
    "releasedOn": None,
    "owner": {"ID": "u1"},
    "address": {"street": "Main street", "city": "Oslo"},
    "metadata": {"color": "red"},
    "related": [{"ID": "2"}, {"ID": "3"}],
}

FLAT_THING_RESULT = {
    "ID": "1",
    "name": "first",
    "tags.0": "a",
    "tags.1": "b",
    "labels": None,
    "status": "ACTIVE",
    "price": 9.5,
    "quantity": 3,
    "active": True,
    "createdAt": "2021-01-01T00:00:00",
    "releasedOn": None,
    "owner": "u1",
    "address.street": "Main street",
    "address.city": "Oslo",
    "metadata.color": "red",
    "related.0": "2",
    "related.1": "3",
}


class ConnectionTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.endpoint = MockGraphQLEndpoint()
        self.reported: List[Tuple[Exception, Optional[GraphQLErrorPayloads]]] = []

    def report(self, error: Exception, original_errors: Optional[GraphQLErrorPayloads]) -> None:
        self.reported.append((error, original_errors))

    def get_connection(self, *resources: Any, **kwargs: Any) -> GraphQLConnection:
        connection = get_test_connection(
            self.endpoint, list(resources) or None, on_error=self.report, **kwargs
        )
        self.addAsyncCleanup(connection.aclose)
        return connection


class ConnectionInitTests(ConnectionTestCase):
    async def test_init(self) -> None:
        connection = self.get_connection()
        adapters = await connection.init()

        self.assertEqual(["Thing"], list(adapters))
        self.assertIs(adapters["Thing"], connection.r["Thing"])
        self.assertIs(adapters["Thing"], connection.get_adapter("Thing"))
        self.assertIsNotNone(connection.schema_model)

        # The schema is fetched once, and nothing else is sent during init.
        self.assertEqual([INTROSPECTION_QUERY], [body["query"] for body in self.endpoint.bodies])
        self.assertEqual([], self.reported)

    async def test_async_context_manager(self) -> None:
        async with self.get_connection() as connection:
            self.assertEqual(["Thing"], list(connection.adapters))

    async def test_adapter_metadata(self) -> None:
        connection = self.get_connection()
        adapter = (await connection.init())["Thing"]

        self.assertEqual("Thing", adapter.resource_id())
        self.assertEqual("test", adapter.database_name())
        self.assertEqual("graphql", adapter.database_type())
        self.assertEqual("ID", adapter.properties()[0].path)
        self.assertTrue(adapter.properties()[0].is_id)
        self.assertEqual(PropertyType.STRING, adapter.property("address.city").type)
        self.assertEqual(PropertyType.REFERENCE, adapter.property("owner").type)
        self.assertIsNone(adapter.property("metadata"))
        self.assertEqual("JSON", adapter.type_map["metadata"].name)

    async def test_get_adapter_before_init(self) -> None:
        connection = self.get_connection()
        with self.assertRaises(ResourceNotInitializedError):
            connection.get_adapter("Thing")
        self.assertEqual({}, connection.r)

    async def test_init_with_two_top_level_fields(self) -> None:
        broken_resource = get_sample_query_resource(
            "query ($ID: ID!) { thing(ID: $ID) { ID } thingCount }", resource_id="Broken"
        )
        connection = self.get_connection(get_thing_resource(), broken_resource)

        with self.assertRaises(InvalidDocumentError):
            await connection.init()

        self.assertEqual({}, connection.adapters)
        self.assertIsNone(connection.schema_model)
        self.assertEqual(1, len(self.reported))
        self.assertIsInstance(self.reported[0][0], InvalidDocumentError)
        self.assertIsNone(self.reported[0][1])

    async def test_init_with_schema_drift(self) -> None:
        drifted_resource = get_sample_query_resource("{ thing(ID: 1) { ID color } }")
        connection = self.get_connection(drifted_resource)

        with self.assertRaises(SchemaMismatchError):
            await connection.init()
        self.assertEqual({}, connection.adapters)
        self.assertEqual(1, len(self.reported))

    async def test_init_with_invalid_introspection(self) -> None:
        self.endpoint.introspection_response = {"data": {"types": []}}
        connection = self.get_connection()

        with self.assertRaises(SchemaError):
            await connection.init()
        self.assertEqual(1, len(self.reported))

    async def test_init_with_introspection_disabled(self) -> None:
        errors = [{"message": "Introspection is disabled"}]
        self.endpoint.introspection_response = {"data": None, "errors": errors}
        connection = self.get_connection()

        with self.assertRaises(RemoteGraphQLError) as context:
            await connection.init()
        self.assertEqual(errors, context.exception.errors)
        self.assertEqual([(context.exception, errors)], self.reported)

    async def test_init_with_unreachable_endpoint(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        self.endpoint.handle = refuse  # type: ignore
        connection = self.get_connection()

        with self.assertRaises(TransportError):
            await connection.init()
        self.assertEqual(1, len(self.reported))
        self.assertIsNone(self.reported[0][1])

    async def test_headers_are_sent_with_every_request(self) -> None:
        tokens = iter(["first", "second"])
        connection = self.get_connection(headers=lambda: {"X-Api-Key": next(tokens)})

        adapter = (await connection.init())["Thing"]
        self.endpoint.respond_with({"data": {"thingCount": 0}})
        await adapter.count([])

        self.assertEqual(
            ["first", "second"],
            [request.headers["x-api-key"] for request in self.endpoint.requests],
        )


    async def test_async_context_manager_closes_client_when_init_fails(self) -> None:
        broken_resource = get_sample_query_resource(
            "query ($ID: ID!) { thing(ID: $ID) { ID } thingCount }", resource_id="Broken"
        )
        connection = self.get_connection(broken_resource)

        with self.assertRaises(InvalidDocumentError):
            async with connection:
                self.fail("The connection should not have been entered.")

        self.assertEqual(1, len(self.endpoint.requests))
        self.assertIsNone(connection.client._client)

    async def test_duplicate_resource_ids(self) -> None:
        with self.assertRaises(ValueError):
            GraphQLConnection([get_thing_resource(), get_thing_resource()])
        with self.assertRaises(ValueError):
            get_test_connection(
                self.endpoint, [get_thing_resource(), get_sample_query_resource(THING_QUERY)]
            )


class ResourceAdapterTests(ConnectionTestCase):
    async def asyncSetUp(self) -> None:
        self.connection = self.get_connection()
        self.adapter = (await self.connection.init())["Thing"]

    async def test_count(self) -> None:
        self.endpoint.respond_with({"data": {"thingCount": 3}})

        count = await self.adapter.count(
            [FilterElement("name", "first"), FilterElement("quantity", FilterRange("1", 5))]
        )

        self.assertEqual(3, count)
        self.assertEqual(
            {
                "query": THING_COUNT_QUERY,
                "variables": {
                    "filter": [
                        {"field": "name", "is": "MATCH", "to": "first"},
                        {"field": "quantity", "is": "GTE", "to": 1},
                        {"field": "quantity", "is": "LTE", "to": 5},
                    ]
                },
            },
            self.endpoint.data_bodies[-1],
        )

    async def test_find(self) -> None:
        self.endpoint.respond_with({"data": {"things": [THING_RESULT]}})

        records = await self.adapter.find(
            [FilterElement("owner", "u1")],
            FindOptions(limit=10, offset=20, sort=SortOptions("name", "desc")),
        )

        self.assertEqual([FLAT_THING_RESULT], records)
        self.assertEqual(
            {
                "filter": [{"field": "owner", "is": "EQ", "to": "u1"}],
                "limit": 10,
                "offset": 20,
                "sortBy": "name",
                "direction": "desc",
            },
            self.endpoint.data_bodies[-1]["variables"],
        )

    async def test_find_with_uncoercible_filter(self) -> None:
        with self.assertRaises(CoercionError):
            await self.adapter.find([FilterElement("quantity", "many")])
        self.assertEqual([], self.endpoint.data_bodies)
        self.assertEqual(1, len(self.reported))

    async def test_find_one(self) -> None:
        self.endpoint.respond_with({"data": {"thing": THING_RESULT}})

        record = await self.adapter.find_one({"ID": "1"})

        self.assertEqual(FLAT_THING_RESULT, record)
        self.assertEqual({"ID": "1"}, self.endpoint.data_bodies[-1]["variables"])

    async def test_find_one_missing(self) -> None:
        self.endpoint.respond_with({"data": {"thing": None}})
        self.assertIsNone(await self.adapter.find_one("404"))

    async def test_find_many(self) -> None:
        def resolve(body: Any) -> httpx.Response:
            thing = THING_RESULT if body["variables"]["ID"] == "1" else None
            return httpx.Response(200, json={"data": {"thing": thing}})

        self.endpoint.resolve = resolve

        records = await self.adapter.find_many([1, 2])

        self.assertEqual([FLAT_THING_RESULT], records)
        self.assertEqual(
            ["1", "2"], sorted(body["variables"]["ID"] for body in self.endpoint.data_bodies)
        )

    async def test_create(self) -> None:
        self.endpoint.respond_with(
            {"data": {"createThing": {"ID": "7", "name": "new", "owner": {"ID": "u1"}}}}
        )

        record = await self.adapter.create(
            {
                "name": "new",
                "quantity": "3",
                "status": "ARCHIVED",
                "tags.0": "a",
                "tags.1": "b",
                "owner": "u1",
            }
        )

        self.assertEqual({"ID": "7", "name": "new", "owner": "u1"}, record)
        self.assertEqual(
            {
                "data": {
                    "name": "new",
                    "quantity": 3,
                    "status": "ARCHIVED",
                    "tags": ["a", "b"],
                    "owner": "u1",
                }
            },
            self.endpoint.data_bodies[-1]["variables"],
        )

    async def test_update(self) -> None:
        self.endpoint.respond_with({"data": {"updateThing": {"ID": "7", "price": 2.5}}})

        record = await self.adapter.update({"ID": "7"}, {"price": "2.5", "address.city": "Lima"})

        self.assertEqual({"ID": "7", "price": 2.5}, record)
        self.assertEqual(
            {"ID": "7", "data": {"price": 2.5, "address": {"city": "Lima"}}},
            self.endpoint.data_bodies[-1]["variables"],
        )

    async def test_update_with_uncoercible_value(self) -> None:
        with self.assertRaises(CoercionError):
            await self.adapter.update("7", {"quantity": "three"})
        self.assertEqual([], self.endpoint.data_bodies)
        self.assertEqual(1, len(self.reported))

    async def test_delete(self) -> None:
        self.endpoint.respond_with({"data": {"deleteThing": True}})

        self.assertIsNone(await self.adapter.delete(7))
        self.assertEqual({"ID": "7"}, self.endpoint.data_bodies[-1]["variables"])

    async def test_remote_errors_alongside_data(self) -> None:
        errors = [{"message": "boom", "path": ["thing"]}, {"message": "bang"}]
        self.endpoint.respond_with({"data": {"thing": THING_RESULT}, "errors": errors})

        with self.assertRaises(RemoteGraphQLError) as context:
            await self.adapter.find_one("1")

        self.assertEqual("GraphQL request error: boom, bang", str(context.exception))
        self.assertEqual([(context.exception, errors)], self.reported)

    async def test_remote_errors_with_error_status(self) -> None:
        errors = [{"message": "Not authorized"}]
        self.endpoint.respond_with({"errors": errors}, status_code=401)

        with self.assertRaises(RemoteGraphQLError) as context:
            await self.adapter.count([])
        self.assertEqual(errors, context.exception.errors)

    async def test_transport_errors(self) -> None:
        self.endpoint.resolve = lambda body: httpx.Response(500, text="Internal Server Error")
        with self.assertRaises(TransportError):
            await self.adapter.count([])

        self.endpoint.resolve = lambda body: httpx.Response(200, text="<html></html>")
        with self.assertRaises(TransportError):
            await self.adapter.count([])

        self.assertEqual(2, len(self.reported))
        self.assertTrue(all(original_errors is None for _, original_errors in self.reported))

    async def test_result_parsing_error(self) -> None:
        self.endpoint.respond_with({"data": {"unexpected": 1}})
        with self.assertRaises(KeyError):
            await self.adapter.count([])
        self.assertEqual(1, len(self.reported))


class ResourceConfigurationTests(ConnectionTestCase):
    async def test_read_only_resource(self) -> None:
        connection = self.get_connection(get_sample_query_resource(THING_QUERY))
        adapter = (await connection.init())["Thing"]

        with self.assertRaises(NotEditableError):
            await adapter.create({"name": "new"})
        with self.assertRaises(NotEditableError):
            await adapter.update("1", {"name": "new"})
        with self.assertRaises(NotEditableError):
            await adapter.delete("1")

        self.assertEqual([], self.endpoint.data_bodies)
        self.assertEqual(3, len(self.reported))

    async def test_make_sub_properties(self) -> None:
        connection = self.get_connection(get_thing_resource(make_sub_properties=True))
        adapter = (await connection.init())["Thing"]
        self.endpoint.respond_with({"data": {"things": [THING_RESULT]}})

        self.assertEqual([THING_RESULT], await adapter.find([]))

    async def test_parsed_query_documents(self) -> None:
        count_query = parse(THING_COUNT_QUERY)
        resource = get_thing_resource(
            count=lambda filters: QueryMapping(
                query=count_query,
                variables={"filter": []},
                parse_result=lambda data: data["thingCount"],
            )
        )
        connection = self.get_connection(resource)
        adapter = (await connection.init())["Thing"]
        self.endpoint.respond_with({"data": {"thingCount": 12}})

        self.assertEqual(12, await adapter.count([]))
        self.assertEqual(print_ast(count_query), self.endpoint.data_bodies[-1]["query"])
