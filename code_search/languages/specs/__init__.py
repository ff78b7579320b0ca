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

"""Built-in per-grammar symbol specifications."""

from code_search.languages.specs.additional import (
    BashSpec,
    CSharpSpec,
    DartSpec,
    ElixirSpec,
    LuaSpec,
    OCamlSpec,
    PhpSpec,
    RubySpec,
    SwiftSpec,
    ZigSpec,
)
from code_search.languages.specs.config import HclSpec, TomlSpec, YamlSpec
from code_search.languages.specs.jvm import JavaSpec, KotlinSpec, ScalaSpec
from code_search.languages.specs.python import PythonSpec
from code_search.languages.specs.systems import GoSpec, RustSpec
from code_search.languages.specs.typescript import JavaScriptSpec, TypeScriptSpec

BUILTIN_SPECS = (
    TypeScriptSpec,
    JavaScriptSpec,
    PythonSpec,
    RustSpec,
    GoSpec,
    JavaSpec,
    KotlinSpec,
    ScalaSpec,
    RubySpec,
    SwiftSpec,
    CSharpSpec,
    LuaSpec,
    BashSpec,
    ZigSpec,
    ElixirSpec,
    PhpSpec,
    DartSpec,
    OCamlSpec,
    HclSpec,
    YamlSpec,
    TomlSpec,
)

__all__ = ["BUILTIN_SPECS"] + [cls.__name__ for cls in BUILTIN_SPECS]
