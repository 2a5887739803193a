# Copyright 2025 Google LLC
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

from .builder import SymbolTableBuilder, check_version, load_table
from .exceptions import (DefmtException, TableError, BuildIncompatible, DuplicateIndex,
                         DecodeError, UnknownIndex, MalformedDirective, CyclicNesting,
                         MalformedValue, Starved)
from .frame import Frame, FrameDecoder
from .renderer import format_frame
from .table import Level, Location, Table, TableEntry
