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

"""Base types for per-grammar symbol specifications.

A spec maps raw tree-sitter node types to a symbol kind and supplies the
hooks that differ between grammars: naming, signature extraction and
context-dependent kind resolution. Specs are stateless and shared by every
file of their grammar.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, FrozenSet, Optional, Sequence, Union

if TYPE_CHECKING:
    from tree_sitter import Node


class SymbolKind(str, Enum):
    """Closed taxonomy of symbol kinds."""

    FUNCTION = "function"
    METHOD = "method"
    CLASS = "class"
    INTERFACE = "interface"
    TYPE = "type"
    ENUM = "enum"
    STRUCT = "struct"
    TRAIT = "trait"
    IMPL = "impl"
    MODULE = "module"
    VARIABLE = "variable"
    CONSTANT = "constant"
    PROPERTY = "property"
    BLOCK = "block"
    RESOURCE = "resource"
    DATA = "data"
    PROVIDER = "provider"
    OUTPUT = "output"
    LOCALS = "locals"


@dataclass(frozen=True)
class LanguageInfo:
    """Grammar and display name for a file extension."""

    grammar: str  # tree-sitter grammar id, e.g. "c_sharp"
    name: str  # display name, e.g. "C#"

    @property
    def tag(self) -> str:
        """Lower-cased language tag stored on chunks."""
        return self.name.lower()


Source = Union[str, bytes]

_TRAILING_PUNCT = re.compile(r"[{:\s]+$")
_LEADING_COLON = re.compile(r"^:\s*")
SIGNATURE_SCAN_CHARS = 500


def node_text(node: Optional["Node"]) -> Optional[str]:
    """Decoded text of a node, or None."""
    if node is None or node.text is None:
        return None
    return node.text.decode("utf-8", errors="replace")


def field_text(node: "Node", field: str) -> Optional[str]:
    """Text of the child bound to a grammar field."""
    return node_text(node.child_by_field_name(field))


def first_child_of_type(node: "Node", *types: str) -> Optional["Node"]:
    """First direct child (named or not) whose type is one of ``types``."""
    for child in node.children:
        if child.type in types:
            return child
    return None


def has_ancestor_of_type(ancestors: Sequence["Node"], types: FrozenSet[str]) -> bool:
    return any(a.type in types for a in ancestors)


def extract_signature_line(node: "Node", source: bytes) -> Optional[str]:
    """First line of a declaration, cut at the opening brace.

    Used by grammars without a reliable parameter-list field.
    """
    start = node.start_byte
    text = source[start : start + SIGNATURE_SCAN_CHARS].decode("utf-8", errors="replace")
    end = len(text)
    for stop in ("{", "\n"):
        idx = text.find(stop)
        if idx >= 0:
            end = min(end, idx)
    sig = _TRAILING_PUNCT.sub("", text[:end].strip()).strip()
    return sig or None


def extract_params(node: "Node") -> Optional[str]:
    params = (
        node.child_by_field_name("parameters")
        or node.child_by_field_name("params")
        or first_child_of_type(node, "formal_parameters")
        or first_child_of_type(node, "parameters")
        or first_child_of_type(node, "parameter_list")
    )
    return node_text(params)


def extract_return_type(node: "Node") -> Optional[str]:
    ret = node.child_by_field_name("return_type") or node.child_by_field_name("result")
    return node_text(ret)


def build_signature(
    name: str, node: "Node", source: Optional[bytes] = None
) -> Optional[str]:
    """Compact ``name(params): ret`` signature.

    Declarations without a parameter list fall back to their first source
    line when ``source`` is given, and to None otherwise.
    """
    params = extract_params(node)
    if not params:
        return extract_signature_line(node, source) if source is not None else None
    ret = extract_return_type(node)
    if not ret:
        return f"{name}{params}"
    return f"{name}{params}: {_LEADING_COLON.sub('', ret).strip()}"


class BaseLanguageSpec:
    """Symbol specification for one grammar.

    Subclasses fill in ``node_types`` and ``container_types`` and override
    whichever hooks their grammar needs. The defaults read the ``name``
    field, keep the tabled kind and produce no signature.
    """

    grammars: Sequence[str] = ()
    node_types: Dict[str, SymbolKind] = {}
    container_types: FrozenSet[str] = frozenset()

    def get_name(self, node: "Node", kind: SymbolKind) -> Optional[str]:
        return field_text(node, "name")

    def resolve_kind(
        self, node: "Node", kind: SymbolKind, ancestors: Sequence["Node"]
    ) -> SymbolKind:
        """Reclassify a node given the chain of nodes above it (root first)."""
        return kind

    def get_signature(self, node: "Node", source: bytes) -> Optional[str]:
        return None

    def is_container(self, node: "Node") -> bool:
        return node.type in self.container_types

    def kind_of(self, node: "Node") -> Optional[SymbolKind]:
        return self.node_types.get(node.type)


class NamedSignatureSpec(BaseLanguageSpec):
    """Spec whose signature is ``name(params): ret`` built from grammar fields."""

    def get_signature(self, node: "Node", source: bytes) -> Optional[str]:
        name = field_text(node, "name")
        if not name:
            return extract_signature_line(node, source)
        return build_signature(name, node, source)


class FirstLineSignatureSpec(BaseLanguageSpec):
    """Spec whose signature is the declaration's first source line."""

    def get_signature(self, node: "Node", source: bytes) -> Optional[str]:
        return extract_signature_line(node, source)
