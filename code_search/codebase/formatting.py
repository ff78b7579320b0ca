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

"""Plain-text renderings of a symbol forest."""

from typing import Dict, List, Sequence

from code_search.codebase.symbols import Symbol

KIND_LABELS: Dict[str, str] = {
    "function": "fn",
    "method": "method",
    "class": "class",
    "interface": "iface",
    "type": "type",
    "enum": "enum",
    "struct": "struct",
    "trait": "trait",
    "impl": "impl",
    "module": "mod",
    "variable": "var",
    "constant": "const",
    "property": "prop",
    "block": "block",
    "resource": "resource",
    "data": "data",
    "provider": "provider",
    "output": "output",
    "locals": "locals",
}

NAME_COLUMN_WIDTH = 50


def _line_range(sym: Symbol) -> str:
    if sym.start_line == sym.end_line:
        return f"L{sym.start_line}"
    return f"L{sym.start_line}-L{sym.end_line}"


def _label(sym: Symbol) -> str:
    return KIND_LABELS.get(sym.kind.value, sym.kind.value)


def _display(sym: Symbol, show_signatures: bool) -> str:
    return sym.signature if show_signatures and sym.signature else sym.name


def format_symbols(symbols: Sequence[Symbol], show_signatures: bool = False) -> str:
    """Indented list, one symbol per line: ``fn        name   L3-L9``."""
    lines: List[str] = []

    def walk(items: Sequence[Symbol], indent: int) -> None:
        for sym in items:
            pad = "  " * indent
            display = _display(sym, show_signatures).ljust(NAME_COLUMN_WIDTH - indent * 2)
            lines.append(f"{pad}{_label(sym).ljust(9)} {display} {_line_range(sym)}")
            walk(sym.children, indent + 1)

    walk(symbols, 0)
    return "\n".join(lines)


def format_outline(symbols: Sequence[Symbol], show_signatures: bool = False) -> str:
    """Box-drawing tree outline."""
    lines: List[str] = []

    def walk(items: Sequence[Symbol], prefix: str, is_root: bool) -> None:
        for i, sym in enumerate(items):
            is_last = i == len(items) - 1
            if is_root:
                connector, child_prefix = "", ""
            else:
                connector = "└── " if is_last else "├── "
                child_prefix = prefix + ("    " if is_last else "│   ")
            lines.append(
                f"{prefix}{connector}{_display(sym, show_signatures)} "
                f"({_label(sym)} {_line_range(sym)})"
            )
            walk(sym.children, child_prefix, False)

    walk(symbols, "", True)
    return "\n".join(lines)
