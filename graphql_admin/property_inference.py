# Copyright 2021-present Kensho Technologies, LLC.
"""Infer the properties of a resource by walking its sample document against the live schema.

The sample document is the resource's "find one" query, e.g.

```
query ($ID: ID!) {
    thing(ID: $ID) {
        ID
        name
        tags
        owner { ID }
        address { street city }
    }
}
```

The single top-level field is an artifact of the query root type and is not a property itself.
Every field selected below it becomes a GraphQLProperty, with its kind, list-ness, nullability
and enum values resolved from the schema. A sub-selection consisting only of the identifier field
of an object type, like "owner" above, marks a reference to that type rather than a nested
object. Other sub-selections, like "address", produce nested sub-properties.
"""
import logging
from typing import TYPE_CHECKING, Any, List, Optional, Tuple

from graphql import (
    GraphQLEnumType,
    GraphQLNamedType,
    TypeInfo,
    TypeInfoVisitor,
    Visitor,
    is_interface_type,
    is_object_type,
    visit,
)
from graphql.language.ast import DocumentNode, FieldNode
from graphql.language.visitor import VisitorAction

from .ast_manipulation import (
    get_ast_field_name,
    get_ast_response_key,
    get_only_operation_definition,
)
from .exceptions import SchemaMismatchError
from .global_utils import join_path, strip_non_null_and_list_from_type, unwrap_type
from .properties import (
    GraphQLProperty,
    PropertyType,
    get_property_type_for_graphql_type,
    prune_opaque_leaves,
)
from .schema import SchemaModel, get_enum_value_names
from .typedefs import TypeMap


if TYPE_CHECKING:
    from .resource import GraphQLResource


logger = logging.getLogger(__name__)

# Name of the scalar type that identifies objects, and thereby marks reference fields.
IDENTIFIER_TYPE_NAME = "ID"


def _is_meta_field_name(field_name: str) -> bool:
    """Return True for introspection meta fields such as __typename."""
    return field_name.startswith("__")


class PropertyInferenceVisitor(Visitor):
    def __init__(
        self, type_info: TypeInfo, schema_model: SchemaModel, resource: "GraphQLResource"
    ) -> None:
        """Create a visitor that builds the property tree and type map of one resource.

        Args:
            type_info: Used to keep track of types of fields while traversing the AST. Must be
                       the same TypeInfo that the enclosing TypeInfoVisitor updates.
            schema_model: The schema the sample document is walked against.
            resource: The resource whose sample document is being walked. Its sortable_fields,
                      reference_fields, field_types and make_sub_properties settings are applied.
        """
        super().__init__()
        self.type_info = type_info
        self.schema_model = schema_model
        self.resource = resource

        # Response keys of the fields currently being descended into.
        self.path: List[str] = []

        # One list of properties per structured field being descended into. The bottom list
        # collects the root properties of the resource.
        self.property_stack: List[List[GraphQLProperty]] = [[]]

        self.type_map: TypeMap = {}

    @property
    def properties(self) -> List[GraphQLProperty]:
        """Return the root properties collected so far."""
        return self.property_stack[0]

    def enter_field(
        self, node: FieldNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> VisitorAction:
        """Create the property of the field, and descend into its sub-selection if it has one."""
        field_name = get_ast_field_name(node)
        graphql_type = self.type_info.get_type()
        if self.schema_model.is_root_type(self.type_info.get_parent_type()):
            if graphql_type is None:
                raise SchemaMismatchError(
                    f'Top level field "{field_name}" of resource "{self.resource.resource_id}" '
                    f"does not exist in the schema."
                )
            return None

        if _is_meta_field_name(field_name):
            return self.SKIP

        if graphql_type is None:
            raise SchemaMismatchError(
                f'Unexpected empty type for field "{field_name}" of resource '
                f'"{self.resource.resource_id}". The field does not exist in the schema at '
                f"{join_path(*self.path) or 'the top level'}."
            )

        property_path = join_path(*self.path, get_ast_response_key(node))
        if property_path in self.type_map:
            logger.debug(
                "Skipping repeated selection of %(path)s in resource %(resource)s.",
                {"path": property_path, "resource": self.resource.resource_id},
            )
            return self.SKIP

        named_type, is_array, is_required = unwrap_type(graphql_type)

        enum_values: Optional[Tuple[str, ...]] = None
        if isinstance(named_type, GraphQLEnumType):
            enum_values = tuple(get_enum_value_names(named_type))

        inferred_reference = self._get_inferred_reference(node, named_type)
        property_type = self._get_property_type(
            property_path, named_type, enum_values, inferred_reference
        )
        if self.resource.sortable_fields is not None:
            is_sortable = property_path in self.resource.sortable_fields
        else:
            is_sortable = property_type != PropertyType.REFERENCE

        self.property_stack[-1].append(
            GraphQLProperty(
                path=property_path,
                type=property_type,
                is_id=(
                    named_type.name == IDENTIFIER_TYPE_NAME
                    and property_type != PropertyType.REFERENCE
                ),
                is_array=is_array,
                is_required=is_required,
                is_sortable=is_sortable,
                enum_values=enum_values,
                reference=inferred_reference or self.resource.reference_fields.get(property_path),
            )
        )
        self.type_map[property_path] = named_type

        if inferred_reference is not None:
            # The only selected field is the identifier, there is nothing more to learn below.
            return self.SKIP

        if node.selection_set is not None:
            self.path.append(get_ast_response_key(node))
            self.property_stack.append([])

        return None

    def leave_field(
        self, node: FieldNode, key: Any, parent: Any, path: List[Any], ancestors: List[Any]
    ) -> None:
        """Attach the properties collected below the field as its sub-properties."""
        if self.schema_model.is_root_type(self.type_info.get_parent_type()):
            return
        if node.selection_set is None:
            return

        self.path.pop()
        sub_properties = self.property_stack.pop()
        enclosing_properties = self.property_stack[-1]
        current_property = enclosing_properties[-1]

        if (
            len(sub_properties) == 1
            and sub_properties[0].is_id
            and not self.resource.make_sub_properties
        ):
            # The identifier was only selected to make the field recognizable as a reference.
            logger.debug(
                "Collapsing identifier-only sub-selection of %(path)s in resource %(resource)s.",
                {"path": current_property.path, "resource": self.resource.resource_id},
            )
            sub_properties = []

        enclosing_properties[-1] = current_property.with_sub_properties(sub_properties)

    def _get_inferred_reference(
        self, node: FieldNode, named_type: GraphQLNamedType
    ) -> Optional[str]:
        """Return the referenced type name if the field only selects its type's identifier."""
        if not (is_object_type(named_type) or is_interface_type(named_type)):
            return None
        if node.selection_set is None:
            return None

        # Meta fields such as __typename are ignored.
        selections = [
            selection
            for selection in node.selection_set.selections
            if not (
                isinstance(selection, FieldNode)
                and _is_meta_field_name(get_ast_field_name(selection))
            )
        ]
        if len(selections) != 1 or not isinstance(selections[0], FieldNode):
            return None

        sub_field_name = get_ast_field_name(selections[0])
        sub_field = named_type.fields.get(sub_field_name)
        if sub_field is None:
            raise SchemaMismatchError(
                f'Field "{sub_field_name}" is not in type "{named_type.name}", selected in '
                f'resource "{self.resource.resource_id}".'
            )

        sub_field_type = strip_non_null_and_list_from_type(sub_field.type)
        if sub_field_type.name == IDENTIFIER_TYPE_NAME:
            return named_type.name
        return None

    def _get_property_type(
        self,
        property_path: str,
        named_type: GraphQLNamedType,
        enum_values: Optional[Tuple[str, ...]],
        inferred_reference: Optional[str],
    ) -> PropertyType:
        """Return the property kind, applying the resource's explicit configuration first."""
        if inferred_reference is not None or property_path in self.resource.reference_fields:
            return PropertyType.REFERENCE
        if property_path in self.resource.field_types:
            return PropertyType(self.resource.field_types[property_path])
        if enum_values:
            return PropertyType.STRING
        return get_property_type_for_graphql_type(named_type)


def infer_properties(
    document_ast: DocumentNode, schema_model: SchemaModel, resource: "GraphQLResource"
) -> Tuple[List[GraphQLProperty], TypeMap]:
    """Walk a normalized sample document against the schema, and infer the resource's properties.

    Args:
        document_ast: sample document of the resource, as returned by normalize_document()
        schema_model: model of the live schema the document is meant for
        resource: the resource the document belongs to

    Returns:
        tuple of:
            - the root properties of the resource, in selection order, with structured fields
              carrying their sub-properties. Opaque properties without sub-properties are
              dropped, at every depth.
            - the type map, from the full path of every walked field to its named type

    Raises:
        SchemaMismatchError if the document selects a field that is not in the schema
    """
    type_info = TypeInfo(schema_model.schema)
    visitor = PropertyInferenceVisitor(type_info, schema_model, resource)
    visit(get_only_operation_definition(document_ast), TypeInfoVisitor(type_info, visitor))

    properties = prune_opaque_leaves(visitor.properties)
    return properties, visitor.type_map
