# Copyright 2021-present Kensho Technologies, LLC.
import unittest

from graphql import TypeKind, introspection_from_schema, print_schema

from ..exceptions import SchemaError
from ..schema import build_schema_model
from .test_helpers import get_schema, get_schema_model


class SchemaModelTests(unittest.TestCase):
    def test_build_schema_model_from_introspection(self) -> None:
        schema = get_schema()
        schema_model = build_schema_model(introspection_from_schema(schema))
        self.assertEqual(print_schema(schema), print_schema(schema_model.schema))

    def test_build_schema_model_from_invalid_results(self) -> None:
        invalid_results = [
            None,
            [],
            {},
            {"__schema": None},
            {"__schema": {}},
            {"__schema": {"queryType": {"name": "Query"}, "types": [{"name": "Query"}]}},
        ]
        for invalid_result in invalid_results:
            with self.assertRaises(SchemaError):
                build_schema_model(invalid_result)

    def test_get_type_kind(self) -> None:
        schema_model = get_schema_model()
        self.assertEqual(TypeKind.OBJECT, schema_model.get_type_kind("Thing"))
        self.assertEqual(TypeKind.INTERFACE, schema_model.get_type_kind("Node"))
        self.assertEqual(TypeKind.ENUM, schema_model.get_type_kind("Status"))
        self.assertEqual(TypeKind.SCALAR, schema_model.get_type_kind("DateTime"))
        self.assertEqual(TypeKind.SCALAR, schema_model.get_type_kind("ID"))
        self.assertEqual(TypeKind.INPUT_OBJECT, schema_model.get_type_kind("ThingInput"))
        with self.assertRaises(KeyError):
            schema_model.get_type_kind("Nope")

    def test_get_enum_values(self) -> None:
        schema_model = get_schema_model()
        self.assertEqual(["ACTIVE", "ARCHIVED"], schema_model.get_enum_values("Status"))
        with self.assertRaises(KeyError):
            schema_model.get_enum_values("Thing")

    def test_is_root_type(self) -> None:
        schema_model = get_schema_model()
        self.assertTrue(schema_model.is_root_type(schema_model.get_type("Query")))
        self.assertTrue(schema_model.is_root_type(schema_model.get_type("Mutation")))
        self.assertFalse(schema_model.is_root_type(schema_model.get_type("Thing")))
        self.assertFalse(schema_model.is_root_type(None))
