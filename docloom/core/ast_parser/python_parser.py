"""Python structural analyzer using tree-sitter.

Walks the whole tree, so nested functions and classes are reported too.
Decorators are part of an element: ``start_line`` is the first decorator.
"""

import logging
from typing import List, Optional

import tree_sitter
import tree_sitter_python

from .base import BaseLanguageParser
from .models import ElementKind, Parameter, Scope, StructuralElement

logger = logging.getLogger(__name__)

# Create the Language object once (wraps the PyCapsule)
_PYTHON_LANGUAGE = tree_sitter.Language(tree_sitter_python.language())

# Receiver parameters are not documented
_RECEIVER_NAMES = frozenset({"self", "cls"})


class PythonParser(BaseLanguageParser):
    """tree-sitter based Python analyzer.

    Extracts:
    - function_definition at module level or nested in functions -> kind=function
    - function_definition directly in a class body -> kind=method
    - class_definition -> kind=class (with method/property names)
    """

    BRANCH_NODE_TYPES = frozenset({
        "if_statement",
        "elif_clause",
        "for_statement",
        "while_statement",
        "conditional_expression",
        "except_clause",
        "case_clause",
    })
    COMMENT_PREFIXES = ("#",)

    def get_language(self) -> str:
        return "python"

    def get_tree_sitter_language(self) -> tree_sitter.Language:
        return _PYTHON_LANGUAGE

    def extract_elements(
        self, tree: tree_sitter.Tree, source: bytes, lines: List[str]
    ) -> List[StructuralElement]:
        """Extract elements from the Python AST.

        - function_definition -> function, or method inside a class body
        - class_definition -> class, followed by its methods
        - decorated_definition -> the inner definition spanning the decorators
        """
        elements: List[StructuralElement] = []
        self._walk(tree.root_node, source, lines, elements, class_name=None, nested=False)
        return elements

    def _walk(
        self,
        node: tree_sitter.Node,
        source: bytes,
        lines: List[str],
        elements: List[StructuralElement],
        class_name: Optional[str],
        nested: bool,
    ) -> None:
        for child in node.named_children:
            if child.type == "decorated_definition":
                inner = child.child_by_field_name("definition")
                if inner is not None:
                    self._visit_definition(inner, source, lines, elements, class_name, nested, decorator_node=child)
            elif child.type in ("function_definition", "class_definition"):
                self._visit_definition(child, source, lines, elements, class_name, nested, decorator_node=None)
            else:
                self._walk(child, source, lines, elements, class_name=None, nested=nested)

    def _visit_definition(
        self,
        node: tree_sitter.Node,
        source: bytes,
        lines: List[str],
        elements: List[StructuralElement],
        class_name: Optional[str],
        nested: bool,
        decorator_node: Optional[tree_sitter.Node],
    ) -> None:
        name = self._get_child_text(node, "name", source) or "anonymous"
        body = node.child_by_field_name("body")
        documented = self._has_docstring(body)

        if node.type == "class_definition":
            methods, properties = self._class_members(body, source)
            elements.append(self.build_element(
                ElementKind.CLASS, name, node, lines, outer=decorator_node,
                documented=documented,
                scope=self._scope(name, class_name, nested),
                methods=methods,
                properties=properties,
            ))
            if body is not None:
                self._walk(body, source, lines, elements, class_name=name, nested=True)
            return

        kind = ElementKind.METHOD if class_name else ElementKind.FUNCTION
        elements.append(self.build_element(
            kind, name, node, lines, outer=decorator_node,
            documented=documented,
            parameters=tuple(self._parameters(node, source)),
            return_type=self._strip_type_annotation(self._get_child_text(node, "return_type", source)),
            is_async=self._has_child_type(node, "async"),
            scope=self._scope(name, class_name, nested),
            parent_name=class_name,
        ))
        if body is not None:
            self._walk(body, source, lines, elements, class_name=None, nested=True)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _parameters(self, node: tree_sitter.Node, source: bytes) -> List[Parameter]:
        params_node = node.child_by_field_name("parameters")
        if params_node is None:
            return []

        parameters: List[Parameter] = []
        for child in params_node.named_children:
            if child.type == "identifier":
                name = self._node_text(child, source)
                if name not in _RECEIVER_NAMES:
                    parameters.append(Parameter(name=name))
            elif child.type == "typed_parameter":
                ident = self._get_child_by_type(child, "identifier")
                splat = self._get_child_by_type(child, "list_splat_pattern") or self._get_child_by_type(child, "dictionary_splat_pattern")
                target = ident or splat
                name = self._node_text(target, source) if target is not None else self._node_text(child, source)
                if name in _RECEIVER_NAMES:
                    continue
                parameters.append(Parameter(
                    name=name,
                    type=self._get_child_text(child, "type", source),
                    optional=splat is not None,
                ))
            elif child.type in ("default_parameter", "typed_default_parameter"):
                parameters.append(Parameter(
                    name=self._get_child_text(child, "name", source) or "",
                    type=self._get_child_text(child, "type", source),
                    optional=True,
                    default=self._get_child_text(child, "value", source),
                ))
            elif child.type in ("list_splat_pattern", "dictionary_splat_pattern"):
                parameters.append(Parameter(name=self._node_text(child, source), optional=True))
        return parameters

    @staticmethod
    def _scope(name: str, class_name: Optional[str], nested: bool) -> Scope:
        if class_name:
            if name.startswith("__") and not name.endswith("__"):
                return Scope.PRIVATE
            if name.startswith("_") and not name.endswith("__"):
                return Scope.PROTECTED
            return Scope.PUBLIC
        return Scope.LOCAL if name.startswith("_") or nested else Scope.EXPORTED

    @staticmethod
    def _has_docstring(body: Optional[tree_sitter.Node]) -> bool:
        """True when the first statement of a body is a string literal."""
        if body is None:
            return False
        for child in body.named_children:
            if child.type == "comment":
                continue
            if child.type == "expression_statement":
                return any(sub.type == "string" for sub in child.named_children)
            return False
        return False

    def _class_members(self, body: Optional[tree_sitter.Node], source: bytes):
        methods: List[str] = []
        properties: List[str] = []
        if body is None:
            return (), ()
        for child in body.named_children:
            definition = child.child_by_field_name("definition") if child.type == "decorated_definition" else child
            if definition is None:
                continue
            if definition.type == "function_definition":
                methods.append(self._get_child_text(definition, "name", source) or "anonymous")
            elif definition.type == "expression_statement":
                for sub in definition.named_children:
                    if sub.type == "assignment":
                        left = sub.child_by_field_name("left")
                        if left is not None and left.type == "identifier":
                            properties.append(self._node_text(left, source))
        return tuple(methods), tuple(properties)
