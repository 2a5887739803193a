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
Argument decoding

The wire encoding is not self-describing: each argument is read purely
according to the Type its directive declares.

- fixed-width integers and floats are little-endian
- table indices and lengths are unsigned LEB128
- strings and byte slices are a LEB128 length followed by the bytes
- nested values are the arguments of another table entry, preceded by that
  entry's index unless the directive fixes it
'''

import struct

from .constants import MAX_LEB128_BYTES, MAX_SLICE_LENGTH
from .exceptions import MalformedValue, Starved
from .parser import Kind
from . import values


class ByteCursor(object):
    '''Reads forward through a bytes-like object.

    Running out of data raises `Starved`; a partially available value is
    never returned.

    >>> cursor = ByteCursor(b'\\x96\\x01\\xff')
    >>> cursor.read_uleb128()
    150
    >>> cursor.offset
    2
    '''

    def __init__(self, data, offset=0):
        self.data = data
        self.offset = offset

    @property
    def remaining(self):
        return len(self.data) - self.offset

    def read(self, count):
        if count > self.remaining:
            raise Starved('{} more byte(s) needed'.format(count - self.remaining))
        chunk = bytes(self.data[self.offset:self.offset + count])
        self.offset += count
        return chunk

    def read_uint(self, size, signed=False):
        return int.from_bytes(self.read(size), 'little', signed=signed)

    def read_uleb128(self):
        result = 0
        shift = 0
        for _ in range(MAX_LEB128_BYTES):
            byte = self.read(1)[0]
            result |= (byte & 0x7f) << shift
            if not byte & 0x80:
                return result
            shift += 7
        raise MalformedValue('LEB128 value longer than {} bytes'.format(MAX_LEB128_BYTES))


def _decode_nested(index, cursor, table, depth):
    if depth >= table.max_depth:
        raise MalformedValue('values nested deeper than {} levels'.format(table.max_depth))
    parsed = table.parsed(index)
    return values.Nested(index, decode_arguments(parsed, cursor, table, depth + 1))


def _decode_string(raw):
    try:
        return raw.decode('utf-8')
    except UnicodeDecodeError as e:
        raise MalformedValue('invalid UTF-8 in string argument: {}'.format(e))


def decode_argument(arg_type, cursor, table, depth=0):
    '''Decode one argument of type `arg_type` at the cursor.

    The cursor is advanced by exactly the bytes the argument occupies.
    '''
    kind = arg_type.kind

    if kind is Kind.Integer:
        return values.Integer(arg_type, cursor.read_uint(arg_type.size, arg_type.signed))

    elif kind is Kind.Float:
        fmt = '<f' if arg_type.size == 4 else '<d'
        return values.Float(arg_type, struct.unpack(fmt, cursor.read(arg_type.size))[0])

    elif kind is Kind.Bool:
        byte = cursor.read(1)[0]
        if byte > 1:
            raise MalformedValue('invalid bool value 0x{:02x}'.format(byte))
        return values.Bool(byte == 1)

    elif kind is Kind.Char:
        code = cursor.read_uint(4)
        if code > 0x10ffff or 0xd800 <= code <= 0xdfff:
            raise MalformedValue('invalid char code point 0x{:x}'.format(code))
        return values.Char(chr(code))

    elif kind is Kind.Str:
        length = cursor.read_uleb128()
        return values.String(_decode_string(cursor.read(length)))

    elif kind is Kind.IStr:
        index = cursor.read_uleb128()
        return values.InternedString(index, table.get(index).raw_format)

    elif kind is Kind.Bytes:
        length = cursor.read_uleb128()
        return values.Bytes(cursor.read(length))

    elif kind is Kind.ByteArray:
        return values.Bytes(cursor.read(arg_type.size))

    elif kind is Kind.Format:
        index = cursor.read_uleb128()
        return _decode_nested(index, cursor, table, depth)

    elif kind is Kind.FormatSlice:
        count = cursor.read_uleb128()
        if count > MAX_SLICE_LENGTH:
            raise MalformedValue('format slice of {} elements'.format(count))
        if not count:
            return values.FormatSlice(None, ())
        # all elements share the first element's index
        index = cursor.read_uleb128()
        elements = [_decode_nested(index, cursor, table, depth) for _ in range(count)]
        return values.FormatSlice(index, tuple(elements))

    elif kind is Kind.Nested:
        return _decode_nested(arg_type.target, cursor, table, depth)

    elif kind is Kind.BitField:
        low, high = arg_type.bits
        lowest_byte = low // 8
        highest_byte = high // 8
        raw = cursor.read_uint(highest_byte - lowest_byte + 1)
        return values.BitField(arg_type, raw << (lowest_byte * 8))

    else:
        assert False, 'Known kind not handled'


def decode_arguments(parsed, cursor, table, depth=0):
    '''Decode every argument slot of a ParsedFormat, in wire order.'''
    return tuple(decode_argument(arg_type, cursor, table, depth)
                 for arg_type in parsed.arguments)
