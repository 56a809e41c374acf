"""Java structural analyzer using tree-sitter.

Extracts classes, interfaces, enums, records, methods and constructors.
Annotations live inside the ``modifiers`` child, so an element's start line
is already the first annotation line.
"""

import logging
from typing import List, Optional

import tree_sitter
import tree_sitter_java

from .base import BaseLanguageParser
from .models import ElementKind, Parameter, Scope, StructuralElement

logger = logging.getLogger(__name__)

_JAVA_LANGUAGE = tree_sitter.Language(tree_sitter_java.language())

TYPE_DECLARATION_TYPES = frozenset({
    "class_declaration",
    "enum_declaration",
    "record_declaration",
})
CALLABLE_TYPES = frozenset({"method_declaration", "constructor_declaration"})


class JavaParser(BaseLanguageParser):
    """tree-sitter based Java analyzer.

    Extracts:
    - class/enum/record declarations -> kind=class
    - interface_declaration -> kind=interface
    - method_declaration / constructor_declaration -> kind=method
    - anonymous class bodies are walked with class name "anonymous"
    """

    BRANCH_NODE_TYPES = frozenset({
        "if_statement",
        "for_statement",
        "enhanced_for_statement",
        "while_statement",
        "do_statement",
        "switch_block_statement_group",
        "switch_rule",
        "ternary_expression",
        "catch_clause",
    })

    def get_language(self) -> str:
        return "java"

    def get_tree_sitter_language(self) -> tree_sitter.Language:
        return _JAVA_LANGUAGE

    def extract_elements(
        self, tree: tree_sitter.Tree, source: bytes, lines: List[str]
    ) -> List[StructuralElement]:
        elements: List[StructuralElement] = []
        self._walk(tree.root_node, source, lines, elements, class_name=None)
        return elements

    def _walk(
        self,
        node: tree_sitter.Node,
        source: bytes,
        lines: List[str],
        elements: List[StructuralElement],
        class_name: Optional[str],
    ) -> None:
        for child in node.named_children:
            if child.type in TYPE_DECLARATION_TYPES or child.type == "interface_declaration":
                self._visit_type(child, source, lines, elements, class_name)
            elif child.type in CALLABLE_TYPES:
                self._visit_callable(child, source, lines, elements, class_name or "anonymous")
            elif child.type == "object_creation_expression":
                body = self._get_child_by_type(child, "class_body")
                for arg in child.named_children:
                    if arg is not body:
                        self._walk(arg, source, lines, elements, class_name=None)
                if body is not None:
                    self._walk(body, source, lines, elements, class_name="anonymous")
            else:
                self._walk(child, source, lines, elements, class_name=class_name if child.type.endswith(("_body", "_body_declarations")) else None)

    def _visit_type(
        self,
        node: tree_sitter.Node,
        source: bytes,
        lines: List[str],
        elements: List[StructuralElement],
        enclosing: Optional[str],
    ) -> None:
        name = self._get_child_text(node, "name", source) or "anonymous"
        body = node.child_by_field_name("body")
        kind = ElementKind.INTERFACE if node.type == "interface_declaration" else ElementKind.CLASS

        methods: List[str] = []
        properties: List[str] = []
        if body is not None:
            for member in body.named_children:
                if member.type in CALLABLE_TYPES:
                    methods.append(self._get_child_text(member, "name", source) or "anonymous")
                elif member.type in ("field_declaration", "constant_declaration"):
                    for declarator in member.named_children:
                        if declarator.type == "variable_declarator":
                            field_name = self._get_child_text(declarator, "name", source)
                            if field_name:
                                properties.append(field_name)

        elements.append(self.build_element(
            kind, name, node, lines,
            scope=self._scope(self._modifiers(node, source), enclosing is not None),
            methods=tuple(methods),
            properties=tuple(properties),
            parent_name=enclosing,
        ))
        if body is not None:
            self._walk(body, source, lines, elements, class_name=name)

    def _visit_callable(
        self,
        node: tree_sitter.Node,
        source: bytes,
        lines: List[str],
        elements: List[StructuralElement],
        class_name: str,
    ) -> None:
        name = self._get_child_text(node, "name", source) or "anonymous"
        return_type = None
        if node.type == "method_declaration":
            return_type = self._get_child_text(node, "type", source)

        elements.append(self.build_element(
            ElementKind.METHOD, name, node, lines,
            parameters=tuple(self._parameters(node, source)),
            return_type=return_type,
            scope=self._scope(self._modifiers(node, source), True),
            parent_name=class_name,
        ))
        body = node.child_by_field_name("body")
        if body is not None:
            self._walk(body, source, lines, elements, class_name=None)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _parameters(self, node: tree_sitter.Node, source: bytes) -> List[Parameter]:
        params_node = node.child_by_field_name("parameters")
        if params_node is None:
            return []
        parameters: List[Parameter] = []
        for child in params_node.named_children:
            if child.type == "formal_parameter":
                parameters.append(Parameter(
                    name=self._get_child_text(child, "name", source) or "",
                    type=self._get_child_text(child, "type", source),
                ))
            elif child.type == "spread_parameter":
                declarator = self._get_child_by_type(child, "variable_declarator")
                name = self._get_child_text(declarator, "name", source) if declarator is not None else None
                type_text = None
                for sub in child.named_children:
                    if sub.type not in ("variable_declarator", "modifiers"):
                        type_text = self._node_text(sub, source) + "..."
                        break
                parameters.append(Parameter(name=name or self._node_text(child, source), type=type_text, optional=True))
        return parameters

    def _modifiers(self, node: tree_sitter.Node, source: bytes) -> List[str]:
        modifiers_node = self._get_child_by_type(node, "modifiers")
        if modifiers_node is None:
            return []
        return [child.type for child in modifiers_node.children if not child.is_named]

    @staticmethod
    def _scope(modifiers: List[str], member: bool) -> Scope:
        if "private" in modifiers:
            return Scope.PRIVATE
        if "protected" in modifiers:
            return Scope.PROTECTED
        if "public" in modifiers:
            return Scope.PUBLIC if member else Scope.EXPORTED
        return Scope.LOCAL
