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

"""Symbol specs for configuration formats: HCL, Terraform, YAML and TOML.

Configuration files nest deeply, so callers usually extract them with
``top_level_only`` or a ``max_depth`` bound.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Sequence

from code_search.languages.base import (
    BaseLanguageSpec,
    SymbolKind,
    field_text,
    first_child_of_type,
    has_ancestor_of_type,
    node_text,
)

if TYPE_CHECKING:
    from tree_sitter import Node

# First block label -> specific kind
HCL_BLOCK_KINDS = {
    "resource": SymbolKind.RESOURCE,
    "data": SymbolKind.DATA,
    "provider": SymbolKind.PROVIDER,
    "output": SymbolKind.OUTPUT,
    "variable": SymbolKind.VARIABLE,
    "locals": SymbolKind.LOCALS,
    "module": SymbolKind.MODULE,
}
_HCL_LABEL_END = frozenset({"body", "block_start", "{"})


def hcl_block_labels(node: "Node") -> List[str]:
    """``resource "aws_s3_bucket" "logs" {`` -> ["resource", "aws_s3_bucket", "logs"]."""
    labels: List[str] = []
    for child in node.children:
        if child.type in _HCL_LABEL_END:
            break
        text = node_text(child)
        if not text:
            continue
        if child.type == "identifier":
            labels.append(text)
        elif child.type == "string_lit":
            labels.append(text.replace('"', ""))
    return labels


class HclSpec(BaseLanguageSpec):
    grammars = ("hcl", "terraform")
    node_types = {"block": SymbolKind.BLOCK}
    container_types = frozenset({"block"})

    def get_name(self, node: "Node", kind: SymbolKind) -> Optional[str]:
        labels = hcl_block_labels(node)
        return " ".join(labels) if labels else None

    def resolve_kind(
        self, node: "Node", kind: SymbolKind, ancestors: Sequence["Node"]
    ) -> SymbolKind:
        if kind != SymbolKind.BLOCK:
            return kind
        labels = hcl_block_labels(node)
        if not labels:
            return kind
        return HCL_BLOCK_KINDS.get(labels[0], SymbolKind.BLOCK)


YAML_PAIRS = frozenset({"block_mapping_pair"})


class YamlSpec(BaseLanguageSpec):
    grammars = ("yaml",)
    node_types = {"block_mapping_pair": SymbolKind.PROPERTY}
    container_types = YAML_PAIRS

    def get_name(self, node: "Node", kind: SymbolKind) -> Optional[str]:
        return field_text(node, "key")

    def resolve_kind(
        self, node: "Node", kind: SymbolKind, ancestors: Sequence["Node"]
    ) -> SymbolKind:
        # Top-level keys are sections; nested keys stay properties
        if has_ancestor_of_type(ancestors, YAML_PAIRS):
            return kind
        return SymbolKind.BLOCK


TOML_TABLES = frozenset({"table", "table_array_element"})


class TomlSpec(BaseLanguageSpec):
    grammars = ("toml",)
    node_types = {
        "table": SymbolKind.BLOCK,
        "table_array_element": SymbolKind.BLOCK,
        "pair": SymbolKind.PROPERTY,
    }
    container_types = TOML_TABLES

    def get_name(self, node: "Node", kind: SymbolKind) -> Optional[str]:
        if node.type in TOML_TABLES:
            return node_text(first_child_of_type(node, "bare_key", "dotted_key", "quoted_key"))
        return node_text(first_child_of_type(node, "bare_key", "quoted_key", "dotted_key"))
