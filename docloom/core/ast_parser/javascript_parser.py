"""JavaScript structural analyzer using tree-sitter.

Walks the full tree depth-first, so functions declared inside other
functions, classes inside functions and callbacks assigned to variables are
all reported, outer declarations before inner ones.
"""

import logging
from typing import List, Optional, Tuple

import tree_sitter
import tree_sitter_javascript

from .base import BaseLanguageParser
from .models import ElementKind, Parameter, Scope, StructuralElement

logger = logging.getLogger(__name__)

_JS_LANGUAGE = tree_sitter.Language(tree_sitter_javascript.language())

FUNCTION_DECLARATION_TYPES = frozenset({
    "function_declaration",
    "generator_function_declaration",
})
FUNCTION_EXPRESSION_TYPES = frozenset({
    "arrow_function",
    "function_expression",
    "function",
    "generator_function",
})
CLASS_TYPES = frozenset({"class_declaration", "class", "abstract_class_declaration"})
VARIABLE_DECLARATION_TYPES = frozenset({"lexical_declaration", "variable_declaration"})
METHOD_TYPES = frozenset({"method_definition"})
FIELD_TYPES = frozenset({"field_definition", "public_field_definition"})
EXPORTABLE_TYPES = (
    FUNCTION_DECLARATION_TYPES | FUNCTION_EXPRESSION_TYPES | CLASS_TYPES | VARIABLE_DECLARATION_TYPES
)


class JavaScriptParser(BaseLanguageParser):
    """tree-sitter based JavaScript analyzer.

    Extracts:
    - function declarations -> kind=function
    - arrow functions / function expressions bound to a name -> kind=arrow-function
    - classes (declarations and named class expressions) -> kind=class
    - methods and function-valued class fields -> kind=method
    - module-level non-function bindings -> kind=variable
    """

    BRANCH_NODE_TYPES = frozenset({
        "if_statement",
        "for_statement",
        "for_in_statement",
        "while_statement",
        "do_statement",
        "switch_case",
        "ternary_expression",
        "catch_clause",
    })

    def get_language(self) -> str:
        return "javascript"

    def get_tree_sitter_language(self) -> tree_sitter.Language:
        return _JS_LANGUAGE

    def extract_elements(
        self, tree: tree_sitter.Tree, source: bytes, lines: List[str]
    ) -> List[StructuralElement]:
        elements: List[StructuralElement] = []
        self._walk(tree.root_node, source, lines, elements, class_name=None, top_level=True)
        return elements

    # =========================================================================
    # Tree walk
    # =========================================================================

    def _walk(
        self,
        node: tree_sitter.Node,
        source: bytes,
        lines: List[str],
        elements: List[StructuralElement],
        class_name: Optional[str],
        top_level: bool,
    ) -> None:
        for child in node.named_children:
            self._visit(child, source, lines, elements, class_name, top_level, outer=None)

    def _visit(
        self,
        node: tree_sitter.Node,
        source: bytes,
        lines: List[str],
        elements: List[StructuralElement],
        class_name: Optional[str],
        top_level: bool,
        outer: Optional[tree_sitter.Node],
    ) -> None:
        node_type = node.type

        if node_type == "export_statement":
            handled = False
            for child in node.named_children:
                if child.type in EXPORTABLE_TYPES or self._is_extra_declaration(child):
                    self._visit(child, source, lines, elements, class_name, top_level, outer=node)
                    handled = True
            if not handled:
                self._walk(node, source, lines, elements, class_name, top_level)
            return

        exported = outer is not None and outer.type == "export_statement"

        if node_type in FUNCTION_DECLARATION_TYPES or (
            node_type in FUNCTION_EXPRESSION_TYPES and exported
        ):
            name = self._get_child_text(node, "name", source) or "anonymous"
            elements.append(self._function_element(
                ElementKind.FUNCTION, name, node, node, source, lines, outer,
                scope=Scope.EXPORTED if exported else Scope.LOCAL,
            ))
            self._walk(node, source, lines, elements, class_name=None, top_level=False)
            return

        if node_type in CLASS_TYPES:
            self._visit_class(node, source, lines, elements, outer, exported)
            return

        if node_type in VARIABLE_DECLARATION_TYPES:
            self._visit_variables(node, source, lines, elements, top_level, outer, exported)
            return

        if node_type in METHOD_TYPES and class_name:
            self._visit_method(node, node, source, lines, elements, class_name)
            return

        if node_type in FIELD_TYPES and class_name:
            value = node.child_by_field_name("value")
            if value is not None and value.type in FUNCTION_EXPRESSION_TYPES:
                self._visit_method(node, value, source, lines, elements, class_name)
                return

        if self._is_extra_declaration(node):
            extra = self._extra_element(node, source, lines, outer, exported)
            if extra is not None:
                elements.append(extra)
            self._walk(node, source, lines, elements, class_name, top_level=False)
            return

        self._walk(node, source, lines, elements, class_name, top_level=top_level and node_type == "program")

    def _visit_class(
        self,
        node: tree_sitter.Node,
        source: bytes,
        lines: List[str],
        elements: List[StructuralElement],
        outer: Optional[tree_sitter.Node],
        exported: bool,
    ) -> None:
        name = self._get_child_text(node, "name", source) or "anonymous"
        body = node.child_by_field_name("body")
        methods, properties = self._class_members(body, source) if body is not None else ((), ())
        elements.append(self.build_element(
            ElementKind.CLASS, name, node, lines, outer=outer,
            scope=Scope.EXPORTED if exported else Scope.LOCAL,
            methods=methods,
            properties=properties,
        ))
        if body is not None:
            self._walk(body, source, lines, elements, class_name=name, top_level=False)

    def _visit_variables(
        self,
        node: tree_sitter.Node,
        source: bytes,
        lines: List[str],
        elements: List[StructuralElement],
        top_level: bool,
        outer: Optional[tree_sitter.Node],
        exported: bool,
    ) -> None:
        span = outer if outer is not None else node
        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            name_node = declarator.child_by_field_name("name")
            value = declarator.child_by_field_name("value")
            if name_node is None:
                continue
            name = self._node_text(name_node, source)
            scope = Scope.EXPORTED if exported else Scope.LOCAL

            if value is not None and value.type in FUNCTION_EXPRESSION_TYPES:
                elements.append(self._function_element(
                    ElementKind.ARROW_FUNCTION, name, value, value, source, lines, span, scope=scope,
                ))
                self._walk(value, source, lines, elements, class_name=None, top_level=False)
            elif value is not None and value.type in CLASS_TYPES:
                self._visit_class(value, source, lines, elements, span, exported)
            else:
                if top_level and name_node.type == "identifier":
                    elements.append(self.build_element(
                        ElementKind.VARIABLE, name, declarator, lines, outer=span, scope=scope,
                    ))
                if value is not None:
                    self._walk(value, source, lines, elements, class_name=None, top_level=False)

    def _visit_method(
        self,
        node: tree_sitter.Node,
        function_node: tree_sitter.Node,
        source: bytes,
        lines: List[str],
        elements: List[StructuralElement],
        class_name: str,
    ) -> None:
        name_node = node.child_by_field_name("name") or node.child_by_field_name("property")
        name = self._node_text(name_node, source) if name_node else "anonymous"
        modifiers = self._modifiers(node, source)
        elements.append(self._function_element(
            ElementKind.METHOD, name, function_node, node, source, lines, None,
            scope=self._member_scope(name, modifiers),
            parent_name=class_name,
        ))
        body = function_node.child_by_field_name("body")
        if body is not None:
            self._walk(body, source, lines, elements, class_name=None, top_level=False)

    # =========================================================================
    # Element construction
    # =========================================================================

    def _function_element(
        self,
        kind: ElementKind,
        name: str,
        function_node: tree_sitter.Node,
        decl_node: tree_sitter.Node,
        source: bytes,
        lines: List[str],
        outer: Optional[tree_sitter.Node],
        **fields,
    ) -> StructuralElement:
        return self.build_element(
            kind, name, decl_node, lines, outer=outer,
            parameters=tuple(self._parameters(function_node, source)),
            return_type=self._return_type(function_node, source),
            is_async=self._has_child_type(function_node, "async"),
            **fields,
        )

    def _parameters(self, function_node: tree_sitter.Node, source: bytes) -> List[Parameter]:
        params_node = function_node.child_by_field_name("parameters")
        if params_node is None:
            # Single bare arrow parameter: x => x * 2
            single = function_node.child_by_field_name("parameter")
            if single is not None:
                return [Parameter(name=self._node_text(single, source))]
            return []
        parameters: List[Parameter] = []
        for child in params_node.named_children:
            param = self._parameter(child, source)
            if param is not None:
                parameters.append(param)
        return parameters

    def _parameter(self, node: tree_sitter.Node, source: bytes) -> Optional[Parameter]:
        if node.type == "comment":
            return None
        if node.type == "assignment_pattern":
            left = node.child_by_field_name("left")
            right = node.child_by_field_name("right")
            return Parameter(
                name=self._node_text(left, source) if left else self._node_text(node, source),
                optional=True,
                default=self._node_text(right, source) if right else None,
            )
        if node.type == "rest_pattern":
            return Parameter(name=self._node_text(node, source), optional=True)
        return Parameter(name=self._node_text(node, source))

    def _return_type(self, function_node: tree_sitter.Node, source: bytes) -> Optional[str]:
        return None

    def _modifiers(self, node: tree_sitter.Node, source: bytes) -> List[str]:
        modifiers = []
        for child in node.children:
            if child.type in ("static", "async", "get", "set"):
                modifiers.append(child.type)
        return modifiers

    @staticmethod
    def _class_members(body: tree_sitter.Node, source: bytes) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
        methods: List[str] = []
        properties: List[str] = []
        for child in body.named_children:
            name_node = child.child_by_field_name("name") or child.child_by_field_name("property")
            if name_node is None:
                continue
            name = source[name_node.start_byte:name_node.end_byte].decode("utf-8", errors="replace")
            if child.type in ("method_definition", "method_signature", "abstract_method_signature"):
                methods.append(name)
            elif child.type in FIELD_TYPES:
                value = child.child_by_field_name("value")
                if value is not None and value.type in FUNCTION_EXPRESSION_TYPES:
                    methods.append(name)
                else:
                    properties.append(name)
        return tuple(methods), tuple(properties)

    # Hooks for grammars with extra declaration forms (TypeScript interfaces).

    def _is_extra_declaration(self, node: tree_sitter.Node) -> bool:
        return False

    def _extra_element(
        self,
        node: tree_sitter.Node,
        source: bytes,
        lines: List[str],
        outer: Optional[tree_sitter.Node],
        exported: bool,
    ) -> Optional[StructuralElement]:
        return None
