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


class DefmtException(Exception):
    pass


class TableError(DefmtException):
    '''The symbol table could not be recovered from the binary.'''
    pass


class BuildIncompatible(TableError):
    '''The binary was built for a wire format this decoder cannot read.'''
    pass


class DuplicateIndex(TableError):
    pass


class DecodeError(DefmtException):
    '''A frame could not be decoded. Scoped to a single decode attempt.'''
    pass


class UnknownIndex(DecodeError):
    pass


class MalformedDirective(DecodeError):
    pass


class CyclicNesting(MalformedDirective):
    pass


class MalformedValue(DecodeError):
    pass


class Starved(Exception):
    '''Not enough bytes are buffered to finish the current frame.

    This is the expected outcome while waiting on a live stream, so it does
    not derive from DefmtException.
    '''
    pass
