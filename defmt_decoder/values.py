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

'''Decoded argument values.

Every argument decoded from a frame is one of the namedtuples below. The set
is closed; it follows the directive type vocabulary in `parser`.
'''

import collections


class Integer(collections.namedtuple('Integer', 'type value')):

    __slots__ = ()


class Float(collections.namedtuple('Float', 'type value')):

    __slots__ = ()


class Bool(collections.namedtuple('Bool', 'value')):

    __slots__ = ()


class Char(collections.namedtuple('Char', 'value')):

    __slots__ = ()


class String(collections.namedtuple('String', 'value')):

    __slots__ = ()


class InternedString(collections.namedtuple('InternedString', 'index value')):

    __slots__ = ()


class Bytes(collections.namedtuple('Bytes', 'value')):

    __slots__ = ()


class Nested(collections.namedtuple('Nested', 'index args')):
    '''A value formatted by another table entry, with that entry's arguments.'''

    __slots__ = ()


class FormatSlice(collections.namedtuple('FormatSlice', 'index elements')):

    __slots__ = ()


class BitField(collections.namedtuple('BitField', 'type value')):
    '''Backing integer of one or more bitfield directives.

    Only the bytes covering the merged bit range travel on the wire; `value`
    has them shifted back into their original position, all other bits zero.
    '''

    __slots__ = ()

    def extract(self, low, high):
        '''Return bits low..=high of the backing integer as an Integer.'''
        mask = (1 << (high - low + 1)) - 1
        return Integer(self.type, (self.value >> low) & mask)
