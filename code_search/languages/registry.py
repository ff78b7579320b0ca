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

"""Grammar spec registry and extension-based language detection.

Maps file extensions to grammars and grammars to their symbol spec,
providing a central point for language routing.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Type, Union

from code_search.languages.base import BaseLanguageSpec, LanguageInfo

logger = logging.getLogger(__name__)


def _info(grammar: str, name: str) -> LanguageInfo:
    return LanguageInfo(grammar=grammar, name=name)


EXTENSION_MAP: Dict[str, LanguageInfo] = {
    # TypeScript / JavaScript
    ".ts": _info("typescript", "TypeScript"),
    ".mts": _info("typescript", "TypeScript"),
    ".cts": _info("typescript", "TypeScript"),
    ".tsx": _info("tsx", "TSX"),
    ".js": _info("javascript", "JavaScript"),
    ".jsx": _info("javascript", "JavaScript"),
    ".mjs": _info("javascript", "JavaScript"),
    ".cjs": _info("javascript", "JavaScript"),
    # Core languages
    ".py": _info("python", "Python"),
    ".pyi": _info("python", "Python"),
    ".rs": _info("rust", "Rust"),
    ".go": _info("go", "Go"),
    ".java": _info("java", "Java"),
    # Additional languages
    ".kt": _info("kotlin", "Kotlin"),
    ".kts": _info("kotlin", "Kotlin"),
    ".swift": _info("swift", "Swift"),
    ".rb": _info("ruby", "Ruby"),
    ".php": _info("php", "PHP"),
    ".cs": _info("c_sharp", "C#"),
    ".scala": _info("scala", "Scala"),
    ".lua": _info("lua", "Lua"),
    ".sh": _info("bash", "Bash"),
    ".bash": _info("bash", "Bash"),
    ".zsh": _info("bash", "Bash"),
    ".zig": _info("zig", "Zig"),
    ".ex": _info("elixir", "Elixir"),
    ".exs": _info("elixir", "Elixir"),
    ".dart": _info("dart", "Dart"),
    ".ml": _info("ocaml", "OCaml"),
    ".mli": _info("ocaml", "OCaml"),
    # Config files
    ".yml": _info("yaml", "YAML"),
    ".yaml": _info("yaml", "YAML"),
    ".toml": _info("toml", "TOML"),
    ".hcl": _info("hcl", "HCL"),
    ".tf": _info("terraform", "Terraform"),
    ".tfvars": _info("terraform", "Terraform"),
}


def detect_language(path: Union[str, Path]) -> Optional[LanguageInfo]:
    """Language for a file path, or None when the extension is unsupported."""
    return EXTENSION_MAP.get(Path(path).suffix.lower())


def supported_extensions() -> List[str]:
    return sorted(EXTENSION_MAP)


class LanguageSpecRegistry:
    """Registry of symbol specs keyed by grammar id.

    Exactly one spec instance exists per grammar; grammars that share a
    spec class (typescript/tsx, hcl/terraform) share the instance.
    """

    def __init__(self):
        self._specs: Dict[str, BaseLanguageSpec] = {}

    def register(
        self,
        spec: Union[BaseLanguageSpec, Type[BaseLanguageSpec]],
        grammars: Optional[List[str]] = None,
    ) -> None:
        """Register a spec for its grammars.

        Args:
            spec: Spec instance or class
            grammars: Grammar ids (defaults to the spec's own ``grammars``)
        """
        instance = spec() if isinstance(spec, type) else spec
        names = grammars or list(instance.grammars)
        if not names:
            raise ValueError(f"{type(instance).__name__} declares no grammars")
        for grammar in names:
            if grammar in self._specs:
                logger.debug(f"Replacing symbol spec for grammar: {grammar}")
            self._specs[grammar] = instance

    def get(self, grammar: str) -> Optional[BaseLanguageSpec]:
        """Spec for a grammar, or None if unsupported."""
        return self._specs.get(grammar)

    def has(self, grammar: str) -> bool:
        return grammar in self._specs

    def list_grammars(self) -> List[str]:
        return sorted(self._specs)

    def discover_specs(self) -> int:
        """Register the built-in specs.

        Returns:
            Number of grammars registered
        """
        from code_search.languages.specs import BUILTIN_SPECS

        for spec_class in BUILTIN_SPECS:
            self.register(spec_class)

        logger.debug(f"Registered symbol specs for {len(self._specs)} grammars")
        return len(self._specs)


# Global registry instance
_global_registry: Optional[LanguageSpecRegistry] = None


def get_spec_registry() -> LanguageSpecRegistry:
    """Get the global spec registry, populated with the built-in specs."""
    global _global_registry
    if _global_registry is None:
        _global_registry = LanguageSpecRegistry()
        _global_registry.discover_specs()
    return _global_registry
