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
Format string directives

A format string is literal text interleaved with directives of the form

    {[position][=type][:hint]}

The type names the on-wire encoding of the argument bound to the directive
and the hint only changes how the decoded value is displayed. `{{` and `}}`
stand for literal braces.

>>> parse_format('x={=u8:#x}').arguments
(Type(kind=<Kind.Integer: 'integer'>, name='u8', size=1, signed=False, target=None, bits=None),)
'''

import collections
import enum

from .constants import (BITFIELD_PATTERN, BYTE_ARRAY_PATTERN, FIXED_NESTED_PATTERN,
                        HINT_PATTERN, POSITION_PATTERN)
from .exceptions import MalformedDirective


@enum.unique
class Kind(enum.Enum):
    Integer = 'integer'
    Float = 'float'
    Bool = 'bool'
    Char = 'char'
    Str = 'str'
    IStr = 'istr'
    Bytes = 'bytes'
    ByteArray = 'byte_array'
    Format = 'format'
    FormatSlice = 'format_slice'
    Nested = 'nested'
    BitField = 'bitfield'


class Type(collections.namedtuple('Type', 'kind name size signed target bits')):
    '''On-wire type of one argument.

    `size` is the fixed byte width (0 for length-prefixed types), `target`
    the fixed table index of a nested value and `bits` the inclusive
    (low, high) range of a bitfield.
    '''

    __slots__ = ()

    @property
    def width(self):
        return self.size * 8


def _type(kind, name, size=0, signed=False, target=None, bits=None):
    return Type(kind, name, size, signed, target, bits)


PRIMITIVES = {
    'u8':    _type(Kind.Integer, 'u8', 1),
    'u16':   _type(Kind.Integer, 'u16', 2),
    'u24':   _type(Kind.Integer, 'u24', 3),
    'u32':   _type(Kind.Integer, 'u32', 4),
    'u64':   _type(Kind.Integer, 'u64', 8),
    'u128':  _type(Kind.Integer, 'u128', 16),
    'usize': _type(Kind.Integer, 'usize', 4),
    'i8':    _type(Kind.Integer, 'i8', 1, signed=True),
    'i16':   _type(Kind.Integer, 'i16', 2, signed=True),
    'i32':   _type(Kind.Integer, 'i32', 4, signed=True),
    'i64':   _type(Kind.Integer, 'i64', 8, signed=True),
    'i128':  _type(Kind.Integer, 'i128', 16, signed=True),
    'isize': _type(Kind.Integer, 'isize', 4, signed=True),
    'f32':   _type(Kind.Float, 'f32', 4),
    'f64':   _type(Kind.Float, 'f64', 8),
    'bool':  _type(Kind.Bool, 'bool', 1),
    'char':  _type(Kind.Char, 'char', 4),
    'str':   _type(Kind.Str, 'str'),
    'istr':  _type(Kind.IStr, 'istr'),
    '[u8]':  _type(Kind.Bytes, '[u8]'),
    '?':     _type(Kind.Format, '?'),
    '[?]':   _type(Kind.FormatSlice, '[?]'),
}

FORMAT = PRIMITIVES['?']


def _bitfield(width, low, high):
    return _type(Kind.BitField, 'u{}[{}..={}]'.format(width, low, high), width // 8,
                 bits=(low, high))


class Hint(collections.namedtuple('Hint', 'kind alternate zero_pad width')):

    __slots__ = ()

    @property
    def radix(self):
        return self.kind in ('x', 'X', 'b', 'o')


class Literal(collections.namedtuple('Literal', 'text')):

    __slots__ = ()


class Directive(collections.namedtuple('Directive', 'position type hint')):

    __slots__ = ()


class ParsedFormat(collections.namedtuple('ParsedFormat', 'fragments arguments')):
    '''A parsed format string.

    `fragments` holds the Literal and Directive runs in text order.
    `arguments` holds one Type per argument position in wire order;
    bitfields sharing a position are merged into a single slot.
    '''

    __slots__ = ()

    def directives(self):
        return [f for f in self.fragments if isinstance(f, Directive)]

    def nested_targets(self):
        return [t.target for t in self.arguments if t.kind is Kind.Nested]


def parse_type(text):
    '''Parse the part of a directive following `=`.

    An absent type means the argument is a Format value carrying its own
    table index on the wire.
    '''
    if text is None:
        return FORMAT

    text = text.strip()
    if text in PRIMITIVES:
        return PRIMITIVES[text]

    match = BYTE_ARRAY_PATTERN.match(text)
    if match:
        length = int(match.group('length'))
        return _type(Kind.ByteArray, '[u8; {}]'.format(length), length)

    match = FIXED_NESTED_PATTERN.match(text)
    if match:
        return _type(Kind.Nested, text, target=int(match.group('index')))

    match = BITFIELD_PATTERN.match(text)
    if match:
        width = int(match.group('width'))
        low = int(match.group('low'))
        high = int(match.group('high'))
        if high <= low:
            raise MalformedDirective(
                    'bitfield range {}: high bit must be above low bit'.format(text))
        if high >= width:
            raise MalformedDirective(
                    'bitfield range {} exceeds the {}-bit backing integer'.format(text, width))
        return _bitfield(width, low, high)

    raise MalformedDirective("unknown type tag '{}'".format(text))


def parse_hint(text):
    if text is None:
        return None

    match = HINT_PATTERN.match(text)
    if not match:
        raise MalformedDirective("unknown display hint '{}'".format(text))

    kind = match.group('kind')
    if kind == '\xb5s':
        kind = 'us'
    width = int(match.group('width') or 0)
    return Hint(kind, bool(match.group('alternate')), bool(match.group('zero')), width)


def _merge_slot(position, existing, new):
    if existing == new:
        return existing

    if existing.kind is Kind.BitField and new.kind is Kind.BitField:
        if existing.size != new.size:
            raise MalformedDirective(
                    'argument {} used as bitfields of {} and {}'.format(
                        position, existing.name, new.name))
        return _bitfield(existing.width,
                         min(existing.bits[0], new.bits[0]),
                         max(existing.bits[1], new.bits[1]))

    raise MalformedDirective('argument {} used as both {} and {}'.format(
                             position, existing.name, new.name))


def _parse_directive(body, next_implicit):
    match = POSITION_PATTERN.match(body)
    if not match:
        raise MalformedDirective("malformed directive '{{{}}}'".format(body))

    implicit = match.group('position') is None
    position = next_implicit if implicit else int(match.group('position'))

    directive = Directive(position, parse_type(match.group('type')),
                          parse_hint(match.group('hint')))
    return directive, implicit


def parse_format(raw_format):
    '''Split a format string into literal and directive fragments.

    Raises MalformedDirective if the directive grammar is violated.
    '''
    fragments = []
    literal = []
    slots = {}
    implicit = 0

    offset = 0
    length = len(raw_format)
    while offset < length:
        char = raw_format[offset]

        if char == '}':
            if raw_format.startswith('}}', offset):
                literal.append('}')
                offset += 2
                continue
            raise MalformedDirective("unmatched '}}' at offset {} in '{}'".format(
                                     offset, raw_format))

        if char != '{':
            literal.append(char)
            offset += 1
            continue

        if raw_format.startswith('{{', offset):
            literal.append('{')
            offset += 2
            continue

        end = raw_format.find('}', offset + 1)
        if end == -1 or '{' in raw_format[offset + 1:end]:
            raise MalformedDirective("unterminated directive at offset {} in '{}'".format(
                                     offset, raw_format))

        directive, used_implicit = _parse_directive(raw_format[offset + 1:end], implicit)
        if used_implicit:
            implicit += 1

        if literal:
            fragments.append(Literal(''.join(literal)))
            literal = []
        fragments.append(directive)

        if directive.position in slots:
            slots[directive.position] = _merge_slot(directive.position,
                                                    slots[directive.position],
                                                    directive.type)
        else:
            slots[directive.position] = directive.type

        offset = end + 1

    if literal:
        fragments.append(Literal(''.join(literal)))

    for position in range(len(slots)):
        if position not in slots:
            raise MalformedDirective('argument {} is never used in \'{}\''.format(
                                     position, raw_format))

    return ParsedFormat(tuple(fragments), tuple(slots[p] for p in range(len(slots))))
