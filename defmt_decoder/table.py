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

"""
Format string table recovered from a firmware image
"""

import collections
import enum
import threading

from .constants import MAX_NESTING_DEPTH
from .exceptions import CyclicNesting, DuplicateIndex, MalformedDirective, UnknownIndex
from .codec import ByteCursor
from .frame import decode_frame
from .parser import parse_format


@enum.unique
class Level(enum.IntEnum):
    Trace = 0
    Debug = 1
    Info = 2
    Warn = 3
    Error = 4

    @classmethod
    def from_name(cls, name):
        """
        Look up a level by its lower case name

        :param name: 'trace', 'debug', 'info', 'warn' or 'error'
        :type name: str

        :returns: The Level, or None for an empty name
        """
        if not name:
            return None
        try:
            return cls[name.capitalize()]
        except KeyError:
            raise ValueError("unknown log level '{}'".format(name))


class Location(collections.namedtuple('Location', 'module file line')):

    __slots__ = ()

    def __str__(self):
        return '{}:{}'.format(self.file, self.line)


class TableEntry(collections.namedtuple('TableEntry',
                 'index raw_format level location crate_name tag')):

    __slots__ = ()


class Table(object):
    '''Index to TableEntry mapping for one firmware image.

    The table never changes after construction and may be shared between
    threads. Parsed format strings are cached per index the first time they
    are needed; the cache belongs to this table only.
    '''

    def __init__(self, entries, version, timestamp=None, max_depth=MAX_NESTING_DEPTH):
        self.version = version
        self.max_depth = max_depth
        self._entries = {}
        for entry in entries:
            if entry.index in self._entries:
                raise DuplicateIndex('index {} claimed by both {!r} and {!r}'.format(
                                     entry.index, self._entries[entry.index].raw_format,
                                     entry.raw_format))
            self._entries[entry.index] = entry

        self.timestamp = None
        if timestamp is not None:
            self.timestamp = self.get(timestamp)

        self._cache = {}
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._entries)

    def __contains__(self, index):
        return index in self._entries

    def __iter__(self):
        return iter(self.entries())

    def indices(self):
        return sorted(self._entries)

    def entries(self):
        return [self._entries[index] for index in self.indices()]

    def get(self, index):
        try:
            return self._entries[index]
        except KeyError:
            raise UnknownIndex('index {} is not in the table'.format(index))

    def parsed(self, index):
        '''Return the ParsedFormat of an entry, parsing it on first use.

        Raises UnknownIndex or MalformedDirective. Entries nesting other
        entries by fixed index are checked for cycles before they are cached.
        '''
        parsed = self._cache.get(index)
        if parsed is not None:
            return parsed
        with self._lock:
            return self._parse(index, ())

    def _parse(self, index, chain):
        parsed = self._cache.get(index)
        if parsed is not None:
            return parsed
        if index in chain:
            raise CyclicNesting('index {} nests itself via {}'.format(
                                index, ' -> '.join(str(i) for i in chain + (index,))))

        entry = self.get(index)
        try:
            parsed = parse_format(entry.raw_format)
        except MalformedDirective as e:
            raise type(e)('index {}: {}'.format(index, e))

        for target in parsed.nested_targets():
            if target not in self._entries:
                raise MalformedDirective('index {} nests unknown index {}'.format(index, target))
            self._parse(target, chain + (index,))

        self._cache[index] = parsed
        return parsed

    def parse_all(self):
        '''Parse every entry up front. Raises on the first malformed entry.'''
        for index in self.indices():
            self.parsed(index)

    def decode(self, data):
        '''Decode a single frame from the start of `data`.

        :returns: A tuple of the Frame and the number of bytes it occupied

        Raises Starved if `data` holds only part of a frame.
        '''
        cursor = ByteCursor(data)
        frame = decode_frame(self, cursor)
        return frame, cursor.offset
