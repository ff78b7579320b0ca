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

"""Language detection and per-grammar symbol specifications."""

from code_search.languages.base import BaseLanguageSpec, LanguageInfo, SymbolKind
from code_search.languages.registry import (
    EXTENSION_MAP,
    LanguageSpecRegistry,
    detect_language,
    get_spec_registry,
    supported_extensions,
)

__all__ = [
    "BaseLanguageSpec",
    "EXTENSION_MAP",
    "LanguageInfo",
    "LanguageSpecRegistry",
    "SymbolKind",
    "detect_language",
    "get_spec_registry",
    "supported_extensions",
]
