"""TypeScript structural analyzer using tree-sitter.

Extends the JavaScript walk with TypeScript-specific constructs:
interfaces, typed/optional parameters, return type annotations and
accessibility modifiers. The same class serves TSX via ``tsx=True``.
"""

import logging
from typing import List, Optional

import tree_sitter
import tree_sitter_typescript

from .javascript_parser import JavaScriptParser
from .models import ElementKind, Parameter, Scope, StructuralElement

logger = logging.getLogger(__name__)

_TS_LANGUAGE = tree_sitter.Language(tree_sitter_typescript.language_typescript())
_TSX_LANGUAGE = tree_sitter.Language(tree_sitter_typescript.language_tsx())


class TypeScriptParser(JavaScriptParser):
    """tree-sitter based TypeScript analyzer.

    Extracts everything JavaScriptParser does, plus:
    - interface_declaration -> kind=interface
    - abstract classes and abstract method signatures
    - parameter types, optional markers and return types
    """

    def __init__(self, tsx: bool = False):
        self._tsx = tsx

    def get_language(self) -> str:
        return "typescriptreact" if self._tsx else "typescript"

    def get_tree_sitter_language(self) -> tree_sitter.Language:
        return _TSX_LANGUAGE if self._tsx else _TS_LANGUAGE

    # Interfaces and abstract members are the TypeScript-only declarations.

    def _is_extra_declaration(self, node: tree_sitter.Node) -> bool:
        return node.type in ("interface_declaration", "abstract_method_signature")

    def _extra_element(
        self,
        node: tree_sitter.Node,
        source: bytes,
        lines: List[str],
        outer: Optional[tree_sitter.Node],
        exported: bool,
    ) -> Optional[StructuralElement]:
        name = self._get_child_text(node, "name", source) or "anonymous"

        if node.type == "abstract_method_signature":
            parent = node.parent.parent if node.parent is not None else None
            class_name = self._get_child_text(parent, "name", source) if parent is not None else None
            return self._function_element(
                ElementKind.METHOD, name, node, node, source, lines, None,
                scope=self._member_scope(name, self._modifiers(node, source)),
                parent_name=class_name,
            )

        body = node.child_by_field_name("body")
        methods: List[str] = []
        properties: List[str] = []
        if body is not None:
            for member in body.named_children:
                member_name = self._get_child_text(member, "name", source)
                if not member_name:
                    continue
                if member.type == "method_signature":
                    methods.append(member_name)
                elif member.type == "property_signature":
                    properties.append(member_name)

        return self.build_element(
            ElementKind.INTERFACE, name, node, lines, outer=outer,
            scope=Scope.EXPORTED if exported else Scope.LOCAL,
            methods=tuple(methods),
            properties=tuple(properties),
        )

    def _parameter(self, node: tree_sitter.Node, source: bytes) -> Optional[Parameter]:
        if node.type not in ("required_parameter", "optional_parameter"):
            return super()._parameter(node, source)

        pattern = node.child_by_field_name("pattern")
        type_node = node.child_by_field_name("type")
        value = node.child_by_field_name("value")
        name = self._node_text(pattern, source) if pattern is not None else self._node_text(node, source)
        if name in ("this",):
            return None

        return Parameter(
            name=name,
            type=self._strip_type_annotation(self._node_text(type_node, source)) if type_node else None,
            optional=node.type == "optional_parameter" or value is not None or name.startswith("..."),
            default=self._node_text(value, source) if value is not None else None,
        )

    def _return_type(self, function_node: tree_sitter.Node, source: bytes) -> Optional[str]:
        return self._strip_type_annotation(self._get_child_text(function_node, "return_type", source))

    def _modifiers(self, node: tree_sitter.Node, source: bytes) -> List[str]:
        modifiers = super()._modifiers(node, source)
        for child in node.children:
            if child.type == "accessibility_modifier":
                modifiers.append(self._node_text(child, source).strip())
        return modifiers
