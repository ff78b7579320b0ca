# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""TypeScript, TSX and JavaScript symbol specs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from code_search.languages.base import (
    BaseLanguageSpec,
    SymbolKind,
    build_signature,
    extract_signature_line,
    field_text,
    first_child_of_type,
)

if TYPE_CHECKING:
    from tree_sitter import Node

# Initializers that turn a variable declaration into a function symbol
FUNCTION_VALUES = frozenset({"arrow_function", "function_expression", "function"})
VARIABLE_DECLARATIONS = frozenset({"lexical_declaration", "variable_declaration"})


def _function_declarator(node: "Node") -> Optional["Node"]:
    """``const x = () => {}`` declarator, or None for a plain variable."""
    declarator = first_child_of_type(node, "variable_declarator")
    if declarator is None:
        return None
    value = declarator.child_by_field_name("value")
    if value is not None and value.type in FUNCTION_VALUES:
        return declarator
    return None


class JavaScriptSpec(BaseLanguageSpec):
    grammars = ("javascript",)
    node_types = {
        "function_declaration": SymbolKind.FUNCTION,
        "generator_function_declaration": SymbolKind.FUNCTION,
        "class_declaration": SymbolKind.CLASS,
        "method_definition": SymbolKind.METHOD,
        "lexical_declaration": SymbolKind.FUNCTION,
        "variable_declaration": SymbolKind.FUNCTION,
    }
    container_types = frozenset({"class_declaration"})

    def get_name(self, node: "Node", kind: SymbolKind) -> Optional[str]:
        if node.type in VARIABLE_DECLARATIONS:
            declarator = _function_declarator(node)
            return field_text(declarator, "name") if declarator is not None else None
        if node.type == "export_statement":
            decl = node.child_by_field_name("declaration")
            return self.get_name(decl, kind) if decl is not None else None
        return field_text(node, "name")

    def get_signature(self, node: "Node", source: bytes) -> Optional[str]:
        name = self.get_name(node, SymbolKind.FUNCTION)
        if not name:
            return None
        if node.type in VARIABLE_DECLARATIONS:
            declarator = _function_declarator(node)
            value = declarator.child_by_field_name("value") if declarator is not None else None
            if value is None:
                return extract_signature_line(node, source)
            return build_signature(name, value, source)
        return build_signature(name, node, source)


class TypeScriptSpec(JavaScriptSpec):
    grammars = ("typescript", "tsx")
    node_types = {
        **JavaScriptSpec.node_types,
        "abstract_class_declaration": SymbolKind.CLASS,
        "interface_declaration": SymbolKind.INTERFACE,
        "type_alias_declaration": SymbolKind.TYPE,
        "enum_declaration": SymbolKind.ENUM,
        # namespace Foo { ... }
        "module": SymbolKind.MODULE,
        "internal_module": SymbolKind.MODULE,
    }
    container_types = frozenset(
        {
            "class_declaration",
            "abstract_class_declaration",
            "interface_declaration",
            "enum_declaration",
            "module",
            "internal_module",
        }
    )
