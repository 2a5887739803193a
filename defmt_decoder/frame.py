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

'''
Log frame decoding

A frame on the wire is the LEB128 index of a log statement, the arguments
of the table's timestamp format (if the firmware declares one) and then the
arguments of the log statement itself. Frames are not delimited; the table
alone says how many bytes each one occupies.
'''

import codecs
import logging

from transitions import Machine

from .codec import ByteCursor, decode_arguments
from .exceptions import DecodeError, Starved, UnknownIndex
from . import logging as defmt_logging
from . import renderer


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class Frame(object):
    '''One decoded log event.

    `args` holds one decoded value per argument slot of the log statement
    and `timestamp` the decoded timestamp arguments (empty if the firmware
    has no timestamp). The display text is rendered on demand and the frame
    itself is never modified.
    '''

    def __init__(self, table, entry, timestamp, args):
        self.table = table
        self.entry = entry
        self.timestamp = timestamp
        self.args = args

    @property
    def index(self):
        return self.entry.index

    @property
    def level(self):
        return self.entry.level

    @property
    def location(self):
        return self.entry.location

    @property
    def message(self):
        return renderer.render(self.table, self.table.parsed(self.index), self.args)

    @property
    def timestamp_text(self):
        if self.table.timestamp is None:
            return None
        return renderer.render(self.table, self.table.parsed(self.table.timestamp.index),
                               self.timestamp)

    def __eq__(self, other):
        if not isinstance(other, Frame):
            return NotImplemented
        return (self.table is other.table and self.entry == other.entry and
                self.timestamp == other.timestamp and self.args == other.args)

    def __ne__(self, other):
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    def __repr__(self):
        return 'Frame(index={}, level={}, timestamp={!r}, args={!r})'.format(
                self.index, self.level, self.timestamp, self.args)

    def __str__(self):
        return renderer.format_frame(self)


def decode_frame_body(table, index, cursor):
    '''Decode everything that follows the index of a frame.'''
    entry = table.get(index)
    if entry.level is None:
        raise UnknownIndex('index {} ({!r}) is not a log statement'.format(
                           index, entry.raw_format))

    timestamp = ()
    if table.timestamp is not None:
        timestamp = decode_arguments(table.parsed(table.timestamp.index), cursor, table)

    args = decode_arguments(table.parsed(index), cursor, table)
    return Frame(table, entry, timestamp, args)


def decode_frame(table, cursor):
    index = cursor.read_uleb128()
    return decode_frame_body(table, index, cursor)


class FrameDecoder(object):
    '''Incrementally decodes frames from one byte stream.

    Bytes are appended with `write()` in whatever chunks they arrive.
    `decode()` either returns the next Frame and drops exactly its bytes, or
    raises and leaves the buffer untouched: `Starved` when more bytes are
    needed, a `DecodeError` when the stream cannot be decoded. After an error
    it is up to the caller to resynchronize with `skip()` or `reset()`.

    >>> decoder = FrameDecoder(table)
    >>> decoder.write(data)
    >>> frames = list(decoder)
    '''

    states = ['AwaitingIndex', 'AwaitingArguments', 'Complete', 'Starved', 'Fatal']

    transitions = [
        {'trigger': 'index_read', 'source': 'AwaitingIndex', 'dest': 'AwaitingArguments'},
        {'trigger': 'arguments_read', 'source': 'AwaitingArguments', 'dest': 'Complete'},
        {'trigger': 'starve', 'source': ['AwaitingIndex', 'AwaitingArguments'],
            'dest': 'Starved'},
        {'trigger': 'fail', 'source': ['AwaitingIndex', 'AwaitingArguments'],
            'dest': 'Fatal'},
        {'trigger': 'rearm', 'source': '*', 'dest': 'AwaitingIndex'},
    ]

    def __init__(self, table, name=None):
        if not name:
            name = type(self).__name__
        self.logger = defmt_logging.TaggedAdapter(logger, {'tag': name})
        self.table = table
        self.buffer = bytearray()
        self.machine = Machine(
                model=self, states=self.states, initial='AwaitingIndex',
                transitions=self.transitions, name=name,
                auto_transitions=False)

    @property
    def buffered(self):
        return len(self.buffer)

    def write(self, data):
        '''Append bytes received from the stream.
        '''
        self.buffer.extend(data)

    def decode(self):
        self.rearm()
        with memoryview(self.buffer) as view:
            cursor = ByteCursor(view)
            try:
                index = cursor.read_uleb128()
                self.index_read()
                frame = decode_frame_body(self.table, index, cursor)
            except Starved:
                self.starve()
                raise
            except DecodeError as e:
                self.fail()
                self.logger.error('Failed to decode frame: %s (buffer starts %s)', e,
                                  codecs.encode(bytes(view[:32]), 'hex'))
                raise
        self.arguments_read()
        del self.buffer[:cursor.offset]
        return frame

    def __iter__(self):
        while True:
            try:
                yield self.decode()
            except Starved:
                return

    def skip(self, count):
        '''Discard `count` buffered bytes, e.g. up to a transport frame boundary.
        '''
        del self.buffer[:count]
        self.rearm()

    def reset(self):
        self.buffer = bytearray()
        self.rearm()
