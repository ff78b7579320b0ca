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

"""Spec-driven symbol extraction from tree-sitter syntax trees.

This module walks a parsed tree once and produces a nested forest of
symbols (functions, classes, methods, blocks, ...) in declaration order.
All grammar-specific knowledge lives in the spec classes under
``code_search.languages.specs``; the walker itself never branches on a
language name.

Usage:
    tree = parse_source(source, "python")
    symbols = extract_symbols(tree, "python", source, ExtractOptions(signatures=True))
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, List, Optional, Pattern, Tuple, Union

from code_search.languages.base import BaseLanguageSpec, Source, SymbolKind, field_text
from code_search.languages.registry import LanguageSpecRegistry, get_spec_registry

if TYPE_CHECKING:
    from tree_sitter import Node, Tree

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 80
MAX_SIGNATURE_LENGTH = 120

# Wrappers whose inner declaration is classified as if unwrapped
EXPORT_WRAPPERS = frozenset({"export_statement", "export_declaration"})
DECORATED_WRAPPER = "decorated_definition"

# Inline regex flags like (?i); matching is always case-insensitive
_INLINE_FLAGS = re.compile(r"\(\?[imsux]+\)")

Ancestors = Tuple["Node", ...]


@dataclass(frozen=True)
class Symbol:
    """A named structural unit extracted from source.

    Lines are 1-based and inclusive. ``children`` holds contained symbols,
    e.g. the methods of a class.
    """

    name: str
    kind: SymbolKind
    start_line: int
    end_line: int
    signature: Optional[str] = None
    children: Tuple["Symbol", ...] = ()


@dataclass
class ExtractOptions:
    """Options controlling a single extraction pass."""

    signatures: bool = False
    kind: Optional[str] = None  # keep only this kind (descendants hoisted)
    name_pattern: Optional[str] = None  # case-insensitive regex
    top_level_only: bool = False
    max_depth: Optional[int] = None


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


@dataclass
class _Builder:
    """Mutable stand-in for a Symbol while its children are collected."""

    name: str
    kind: SymbolKind
    start_line: int
    end_line: int
    signature: Optional[str] = None
    children: List["_Builder"] = field(default_factory=list)

    def build(self) -> Symbol:
        return Symbol(
            name=self.name,
            kind=self.kind,
            start_line=self.start_line,
            end_line=self.end_line,
            signature=self.signature,
            children=tuple(child.build() for child in self.children),
        )


class SymbolExtractor:
    """Walks a syntax tree with one grammar's spec."""

    def __init__(self, spec: BaseLanguageSpec, source: bytes, options: ExtractOptions):
        self.spec = spec
        self.source = source
        self.options = options

    def extract(self, root: "Node") -> List[Symbol]:
        results: List[_Builder] = []
        self._walk(root, (), results, 0)
        return [b.build() for b in results]

    def _walk(
        self, node: "Node", ancestors: Ancestors, results: List[_Builder], depth: int
    ) -> None:
        max_depth = self.options.max_depth
        if max_depth is not None and depth > max_depth:
            return

        chain = ancestors + (node,)
        for child in node.children:
            if not child.is_named:
                continue
            try:
                handled = self._visit(child, chain, results, depth)
            except Exception as e:
                # One malformed node never aborts the rest of the file
                logger.debug(f"Skipping {child.type} at line {child.start_point[0] + 1}: {e}")
                continue
            if handled:
                continue
            if self.spec.kind_of(child) is None:
                # program > expression_statement > assignment > function, etc.
                self._walk(child, chain, results, depth)
            elif self.spec.is_container(child) and not self.options.top_level_only:
                # Unnamed container: its members surface at this level
                self._walk(child, chain, results, depth + 1)

    def _visit(
        self, child: "Node", chain: Ancestors, results: List[_Builder], depth: int
    ) -> bool:
        """Emit a symbol for ``child`` if it declares one. Returns True if emitted."""
        spec = self.spec

        raw_kind = spec.kind_of(child)
        if raw_kind is not None:
            kind = spec.resolve_kind(child, raw_kind, chain)
            name = spec.get_name(child, kind)
            if name:
                symbol = self._make(child, child, kind, name)
                if not self.options.top_level_only:
                    if spec.is_container(child):
                        self._walk(child, chain, symbol.children, depth + 1)
                    elif child.type == DECORATED_WRAPPER:
                        # @dataclass class Foo: ... recurses into the inner class
                        inner = child.child_by_field_name("definition")
                        if inner is not None and spec.is_container(inner):
                            self._walk(inner, chain + (child,), symbol.children, depth + 1)
                results.append(symbol)
                return True

        if child.type in EXPORT_WRAPPERS:
            decl = child.child_by_field_name("declaration")
            if decl is not None and self._emit_wrapped(child, decl, chain, results, depth):
                return True

        if child.type == DECORATED_WRAPPER:
            inner = child.child_by_field_name("definition")
            if inner is not None and self._emit_wrapped(child, inner, chain, results, depth):
                return True

        return False

    def _emit_wrapped(
        self,
        wrapper: "Node",
        decl: "Node",
        chain: Ancestors,
        results: List[_Builder],
        depth: int,
    ) -> bool:
        """Emit ``decl`` as if unwrapped, spanning the wrapper's lines."""
        spec = self.spec
        raw_kind = spec.kind_of(decl)
        if raw_kind is None:
            return False
        decl_chain = chain + (wrapper,)
        kind = spec.resolve_kind(decl, raw_kind, decl_chain)
        if wrapper.type == DECORATED_WRAPPER:
            name = field_text(decl, "name")
            sig_node = wrapper
        else:
            name = spec.get_name(decl, kind)
            sig_node = decl
        if not name:
            return False

        symbol = self._make(wrapper, sig_node, kind, name)
        if not self.options.top_level_only and spec.is_container(decl):
            self._walk(decl, decl_chain, symbol.children, depth + 1)
        results.append(symbol)
        return True

    def _make(self, span: "Node", sig_node: "Node", kind: SymbolKind, name: str) -> _Builder:
        signature = None
        if self.options.signatures:
            sig = self.spec.get_signature(sig_node, self.source)
            if sig:
                signature = truncate(sig, MAX_SIGNATURE_LENGTH)
        return _Builder(
            name=truncate(name, MAX_NAME_LENGTH),
            kind=kind,
            start_line=span.start_point[0] + 1,
            end_line=span.end_point[0] + 1,
            signature=signature,
        )


def compile_name_pattern(pattern: str) -> Pattern[str]:
    """Compile a user name pattern, case-insensitively, ignoring inline flags."""
    return re.compile(_INLINE_FLAGS.sub("", pattern), re.IGNORECASE)


def filter_by_kind(symbols: List[Symbol], kind: Union[str, SymbolKind]) -> List[Symbol]:
    """Keep symbols of ``kind``.

    A matching symbol keeps only its matching descendants. Matches below a
    non-matching symbol are hoisted in its place.
    """
    wanted = SymbolKind(kind)
    result: List[Symbol] = []
    for sym in symbols:
        if sym.kind == wanted:
            result.append(replace(sym, children=tuple(filter_by_kind(list(sym.children), wanted))))
        elif sym.children:
            result.extend(filter_by_kind(list(sym.children), wanted))
    return result


def filter_by_name(symbols: List[Symbol], pattern: Pattern[str]) -> List[Symbol]:
    """Keep symbols whose name matches.

    A matching symbol keeps only its matching descendants. A non-matching
    symbol with matching descendants is kept as a shell holding only those.
    """
    result: List[Symbol] = []
    for sym in symbols:
        if pattern.search(sym.name):
            result.append(replace(sym, children=tuple(filter_by_name(list(sym.children), pattern))))
        elif sym.children:
            matched = filter_by_name(list(sym.children), pattern)
            if matched:
                result.append(replace(sym, children=tuple(matched)))
    return result


def extract_symbols(
    tree: "Tree",
    grammar: str,
    source: Source,
    options: Optional[ExtractOptions] = None,
    registry: Optional[LanguageSpecRegistry] = None,
) -> List[Symbol]:
    """Extract the symbol forest of a parsed file.

    Args:
        tree: Parsed syntax tree
        grammar: Grammar id the tree was parsed with
        source: Source text the tree was parsed from
        options: Extraction options
        registry: Spec registry (defaults to the global registry)

    Returns:
        Top-level symbols in declaration order. Unsupported grammars
        return an empty list.
    """
    options = options or ExtractOptions()
    spec = (registry or get_spec_registry()).get(grammar)
    if spec is None:
        return []

    data = source.encode("utf-8") if isinstance(source, str) else source
    symbols = SymbolExtractor(spec, data, options).extract(tree.root_node)

    if options.kind:
        try:
            symbols = filter_by_kind(symbols, options.kind)
        except ValueError:
            logger.debug(f"Unknown symbol kind filter: {options.kind}")
            return []
    if options.name_pattern:
        symbols = filter_by_name(symbols, compile_name_pattern(options.name_pattern))
    return symbols
