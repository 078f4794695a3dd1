# Copyright 2021-present Kensho Technologies, LLC.
"""Parse resource sample documents and bring them to the single-field form the walker expects."""
from copy import copy
from typing import AbstractSet, Dict, List, Sequence, TypeVar, Union

from graphql.error import GraphQLSyntaxError
from graphql.language.ast import (
    DocumentNode,
    FieldNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    InlineFragmentNode,
    OperationDefinitionNode,
    SelectionNode,
    SelectionSetNode,
)
from graphql.language.parser import parse

from .exceptions import InvalidDocumentError


SelectionParentT = TypeVar(
    "SelectionParentT", FieldNode, InlineFragmentNode, OperationDefinitionNode
)


def get_ast_field_name(ast: FieldNode) -> str:
    """Return the field name for the given AST node."""
    return ast.name.value


def get_ast_response_key(ast: FieldNode) -> str:
    """Return the key under which the field appears in the response: its alias, or its name."""
    if ast.alias is not None:
        return ast.alias.value
    return get_ast_field_name(ast)


def get_human_friendly_ast_field_name(ast: Union[SelectionNode, OperationDefinitionNode]) -> str:
    """Return a human-friendly name for the AST node, suitable for error messages."""
    if isinstance(ast, InlineFragmentNode):
        return "type coercion to {}".format(
            ast.type_condition.name.value if ast.type_condition else "enclosing type"
        )
    elif isinstance(ast, FragmentSpreadNode):
        return "spread of fragment {}".format(ast.name.value)
    elif isinstance(ast, OperationDefinitionNode):
        return "{} operation definition".format(ast.operation.value)

    return get_ast_field_name(ast)


def safe_parse_graphql(graphql_string: str) -> DocumentNode:
    """Return an AST representation of the given GraphQL input, reraising GraphQL library errors."""
    try:
        ast = parse(graphql_string)
    except GraphQLSyntaxError as e:
        raise InvalidDocumentError(e.message) from e

    return ast


def _expand_selections(
    selections: Sequence[SelectionNode],
    fragments_by_name: Dict[str, FragmentDefinitionNode],
    expanding_fragments: AbstractSet[str],
) -> List[SelectionNode]:
    """Return the selections with every fragment spread replaced by the fragment's selections."""
    new_selections: List[SelectionNode] = []
    for selection in selections:
        if isinstance(selection, FragmentSpreadNode):
            fragment_name = selection.name.value
            fragment = fragments_by_name.get(fragment_name)
            if fragment is None:
                raise InvalidDocumentError(
                    'Invalid spread reference: fragment "{}" is not defined in the '
                    "document.".format(fragment_name)
                )
            if fragment_name in expanding_fragments:
                raise InvalidDocumentError(
                    'Fragment "{}" spreads itself, directly or through other fragments. '
                    "Fragment cycles cannot be expanded.".format(fragment_name)
                )
            new_selections.extend(
                _expand_selections(
                    fragment.selection_set.selections,
                    fragments_by_name,
                    expanding_fragments | {fragment_name},
                )
            )
        else:
            new_selections.append(
                _expand_fragments_in_node(selection, fragments_by_name, expanding_fragments)
            )
    return new_selections


def _expand_fragments_in_node(
    ast: SelectionParentT,
    fragments_by_name: Dict[str, FragmentDefinitionNode],
    expanding_fragments: AbstractSet[str],
) -> SelectionParentT:
    """Return the node, or a copy of it whose selection set has no fragment spreads left."""
    if ast.selection_set is None:
        return ast

    selections = ast.selection_set.selections
    new_selections = _expand_selections(selections, fragments_by_name, expanding_fragments)
    if len(new_selections) == len(selections) and all(
        new is old for new, old in zip(new_selections, selections)
    ):
        return ast

    new_ast = copy(ast)
    new_ast.selection_set = SelectionSetNode(selections=tuple(new_selections))
    return new_ast


def expand_fragments(document_ast: DocumentNode) -> DocumentNode:
    """Return an equivalent document where every fragment spread is inlined.

    Fragment definitions are dropped from the result, since nothing references them anymore.
    The input AST is not modified.

    Args:
        document_ast: parsed GraphQL document, possibly containing fragment definitions

    Returns:
        new DocumentNode containing only the operation definitions of the input, with their
        fragment spreads replaced by the selections of the fragments they reference

    Raises:
        InvalidDocumentError if a spread references an undefined fragment, or if fragments
        spread each other in a cycle
    """
    fragments_by_name = {
        definition.name.value: definition
        for definition in document_ast.definitions
        if isinstance(definition, FragmentDefinitionNode)
    }
    operations = [
        _expand_fragments_in_node(definition, fragments_by_name, frozenset())
        for definition in document_ast.definitions
        if isinstance(definition, OperationDefinitionNode)
    ]
    return DocumentNode(definitions=tuple(operations))


def get_only_operation_definition(document_ast: DocumentNode) -> OperationDefinitionNode:
    """Assert that the Document AST contains exactly one operation definition, and return it."""
    operations = [
        definition
        for definition in document_ast.definitions
        if isinstance(definition, OperationDefinitionNode)
    ]
    if not operations:
        raise InvalidDocumentError("Document without operation is not allowed.")
    if len(operations) != 1:
        raise InvalidDocumentError(
            "Expected a GraphQL document with a single operation definition, but found "
            "{}: {}".format(
                len(operations),
                [get_human_friendly_ast_field_name(operation) for operation in operations],
            )
        )
    return operations[0]


def get_only_selection_from_ast(ast: SelectionParentT) -> FieldNode:
    """Return the selected field of the AST, ensuring that there is precisely one."""
    selections = [] if ast.selection_set is None else ast.selection_set.selections

    ast_name = get_human_friendly_ast_field_name(ast)
    if len(selections) != 1:
        if selections:
            selection_names = [
                get_human_friendly_ast_field_name(selection_ast) for selection_ast in selections
            ]
            raise InvalidDocumentError(
                "Top level selections must contain exactly one field, but found "
                "{} selections at AST node named {}: {}".format(
                    len(selection_names), ast_name, selection_names
                )
            )
        else:
            raise InvalidDocumentError(
                "Top level selections must contain exactly one field, but got "
                "none. Error near AST node named: {}".format(ast_name)
            )

    selection = selections[0]
    if not isinstance(selection, FieldNode):
        raise InvalidDocumentError(
            "The only top level selection must be a field, not {}.".format(
                get_human_friendly_ast_field_name(selection)
            )
        )
    return selection


def normalize_document(document: Union[str, DocumentNode]) -> DocumentNode:
    """Parse the document if needed, inline its fragments and check it has the expected shape.

    Args:
        document: GraphQL document text, or an already parsed DocumentNode

    Returns:
        DocumentNode with exactly one operation definition, no fragments, and exactly one field
        selected at the top level of that operation

    Raises:
        InvalidDocumentError if the document does not parse or does not have that shape
    """
    if isinstance(document, str):
        document_ast = safe_parse_graphql(document)
    else:
        document_ast = document

    if not isinstance(document_ast, DocumentNode):
        raise InvalidDocumentError(
            'Received an unexpected value for "document": {}'.format(document)
        )

    normalized = expand_fragments(document_ast)
    operation_definition = get_only_operation_definition(normalized)
    get_only_selection_from_ast(operation_definition)
    return normalized
