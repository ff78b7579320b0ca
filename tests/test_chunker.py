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

"""Unit tests for turning symbols into embeddable chunks."""

from pathlib import Path

import pytest

from code_search.codebase.chunker import (
    build_embedding_text,
    extract_chunks,
    flatten_symbols,
    is_config_file,
)
from code_search.codebase.symbols import Symbol
from code_search.languages.base import LanguageInfo, SymbolKind

GO = LanguageInfo("go", "Go")
YAML = LanguageInfo("yaml", "YAML")


def sym(name, kind, children=(), signature=None, line=1):
    return Symbol(
        name=name,
        kind=kind,
        start_line=line,
        end_line=line + 1,
        signature=signature,
        children=tuple(children),
    )


class TestFlattenSymbols:
    """Test depth-first flattening of a symbol forest."""

    def test_depth_first_declaration_order(self):
        forest = [
            sym("Server", SymbolKind.STRUCT, line=1),
            sym(
                "Handler",
                SymbolKind.INTERFACE,
                [sym("Serve", SymbolKind.METHOD, line=6), sym("Close", SymbolKind.METHOD, line=7)],
                line=5,
            ),
            sym("main", SymbolKind.FUNCTION, line=10),
        ]

        chunks = flatten_symbols(forest, "cmd/main.go", GO)

        assert [c.name for c in chunks] == ["Server", "Handler", "Serve", "Close", "main"]
        assert all(c.file_path == "cmd/main.go" and c.language == "go" for c in chunks)

    def test_embedding_text_prefers_signature(self):
        forest = [
            sym("Start", SymbolKind.METHOD, signature="(s *Server) Start(port int): error"),
            sym("Stop", SymbolKind.METHOD),
        ]

        chunks = flatten_symbols(forest, "server.go", GO)

        assert chunks[0].embedding_text == "go | server.go | (s *Server) Start(port int): error"
        assert chunks[1].embedding_text == "go | server.go | Stop"
        assert chunks[0].kind == "method"

    def test_variables_are_not_indexed(self):
        chunks = flatten_symbols([sym("count", SymbolKind.VARIABLE)], "a.go", GO)

        assert chunks == []

    def test_config_files_skip_leaf_properties(self):
        forest = [
            sym("services", SymbolKind.BLOCK, [sym("web", SymbolKind.BLOCK)]),
            sym("version", SymbolKind.PROPERTY),
        ]

        chunks = flatten_symbols(forest, "compose.yaml", YAML, is_config=True)

        assert [c.name for c in chunks] == ["services"]

    def test_build_embedding_text(self):
        assert build_embedding_text("python", "a/b.py", "run()") == "python | a/b.py | run()"

    @pytest.mark.parametrize("name", ["a.toml", "b.yaml", "c.yml", "main.tf", "x.tfvars", "y.hcl"])
    def test_config_extensions(self, name):
        assert is_config_file(Path(name))

    def test_source_is_not_config(self):
        assert not is_config_file(Path("main.go"))


class TestExtractChunks:
    """Test chunk extraction from files on disk."""

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello")

        assert extract_chunks(path, tmp_path) == []

    def test_python_file(self, tmp_path):
        pytest.importorskip("tree_sitter_python")
        path = tmp_path / "pkg" / "jobs.py"
        path.parent.mkdir()
        path.write_text("class Queue:\n    def push(self, item):\n        pass\n")

        chunks = extract_chunks(path, tmp_path)

        assert [(c.name, c.kind, c.line, c.end_line) for c in chunks] == [
            ("Queue", "class", 1, 3),
            ("push", "method", 2, 3),
        ]
        assert chunks[1].embedding_text == "python | pkg/jobs.py | push(self, item)"

    def test_yaml_file_indexes_top_level_sections(self, tmp_path):
        pytest.importorskip("tree_sitter_yaml")
        path = tmp_path / "compose.yaml"
        path.write_text("version: 3\nservices:\n  web:\n    image: nginx\n")

        chunks = extract_chunks(path, tmp_path)

        assert [(c.name, c.kind) for c in chunks] == [("version", "block"), ("services", "block")]
        assert chunks[1].embedding_text == "yaml | compose.yaml | services"

    def test_source_bytes_override_disk(self, tmp_path):
        pytest.importorskip("tree_sitter_python")
        path = tmp_path / "a.py"
        path.write_text("def on_disk():\n    pass\n")

        chunks = extract_chunks(path, tmp_path, source=b"def in_memory():\n    pass\n")

        assert [c.name for c in chunks] == ["in_memory"]
