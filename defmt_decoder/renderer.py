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
Module for turning decoded arguments back into text
"""

import math
import os
import struct

from .constants import BOLD, COLOR_BOLD_RESET, COLOR_DICT, LEVEL_COLORS
from .parser import Literal
from . import values

_F32 = struct.Struct('<f')

_RADIX_PREFIX = {'x': '0x', 'X': '0x', 'b': '0b', 'o': '0o'}

_ESCAPES = {'\\': '\\\\', '\n': '\\n', '\r': '\\r', '\t': '\\t', '\0': '\\0'}


def render(table, parsed, args, inherited_hint=None):
    """
    Render a parsed format string with its decoded arguments

    :param table: Table used to look up nested formats
    :type table: Table
    :param parsed: The format string to fill in
    :type parsed: ParsedFormat
    :param args: One decoded value per argument slot of `parsed`
    :type args: tuple
    :param inherited_hint: Display hint of the directive this format is nested in.
                           Directives without a hint of their own use it.

    :returns: The rendered text
    """
    output = []
    for fragment in parsed.fragments:
        if isinstance(fragment, Literal):
            output.append(fragment.text)
        else:
            hint = fragment.hint or inherited_hint
            output.append(render_value(table, args[fragment.position], fragment, hint))
    return ''.join(output)


def render_value(table, value, directive, hint=None):
    """
    Render one argument for the directive it is bound to

    :returns: The rendered text
    """
    if hint is None:
        hint = directive.hint

    if isinstance(value, values.BitField):
        low, high = directive.type.bits
        extracted = value.extract(low, high)
        return format_integer(extracted.value, extracted.type.width, False, hint)

    elif isinstance(value, values.Integer):
        return format_integer(value.value, value.type.width, value.type.signed, hint)

    elif isinstance(value, values.Float):
        return format_float(value, hint)

    elif isinstance(value, values.Bool):
        return 'true' if value.value else 'false'

    elif isinstance(value, values.Char):
        if hint is not None and hint.kind == '?':
            return "'{}'".format(_escape(value.value, "'"))
        return value.value

    elif isinstance(value, (values.String, values.InternedString)):
        if hint is not None and hint.kind == '?':
            return '"{}"'.format(_escape(value.value, '"'))
        return value.value

    elif isinstance(value, values.Bytes):
        return format_bytes(value.value, hint)

    elif isinstance(value, values.Nested):
        return render(table, table.parsed(value.index), value.args, hint)

    elif isinstance(value, values.FormatSlice):
        return '[{}]'.format(', '.join(render(table, table.parsed(element.index),
                                              element.args, hint)
                                       for element in value.elements))

    else:
        assert False, 'Known value not handled'


def format_integer(number, width, signed, hint):
    if hint is None or not (hint.radix or hint.kind == 'us'):
        return str(number)

    if hint.kind == 'us':
        seconds, micros = divmod(abs(number), 1000000)
        return '{}{}.{:06}'.format('-' if number < 0 else '', seconds, micros)

    # Negative values are shown as their two's complement bit pattern
    if number < 0:
        number &= (1 << width) - 1

    digits = format(number, hint.kind)
    prefix = _RADIX_PREFIX[hint.kind] if hint.alternate else ''
    if hint.zero_pad:
        return prefix + digits.rjust(hint.width - len(prefix), '0')
    return (prefix + digits).rjust(hint.width)


def _shortest_float(value):
    number = value.value
    if value.type.size == 8 or math.isnan(number) or math.isinf(number):
        return number
    # Widened f32 values have long f64 representations; find the shortest
    # decimal that still rounds to the same f32
    for precision in range(1, 10):
        candidate = float('%.*g' % (precision, number))
        if _F32.unpack(_F32.pack(candidate))[0] == number:
            return candidate
    return number


def _compact_exponent(text, marker):
    # 1e+20 -> 1e20, 1e-07 -> 1e-7
    if 'e' not in text:
        return text
    mantissa, exponent = text.split('e')
    return '{}{}{}'.format(mantissa, marker, int(exponent))


def format_float(value, hint):
    number = _shortest_float(value)

    if math.isnan(number):
        return 'NaN'
    if math.isinf(number):
        return 'inf' if number > 0 else '-inf'

    if hint is not None and hint.kind in ('e', 'E'):
        for precision in range(0, 18):
            text = '%.*e' % (precision, number)
            if float(text) == number:
                break
        return _compact_exponent(text, hint.kind)

    return _compact_exponent(repr(number), 'e')


def _escape(text, quote):
    output = []
    for char in text:
        if char in _ESCAPES:
            output.append(_ESCAPES[char])
        elif char == quote:
            output.append('\\' + quote)
        elif ord(char) < 0x20 or ord(char) == 0x7f:
            output.append('\\u{{{:x}}}'.format(ord(char)))
        else:
            output.append(char)
    return ''.join(output)


def format_bytes(data, hint):
    if hint is not None and hint.kind == 'a':
        output = []
        for byte in bytearray(data):
            char = chr(byte)
            if char in _ESCAPES:
                output.append(_ESCAPES[char])
            elif char == '"':
                output.append('\\"')
            elif 0x20 <= byte < 0x7f:
                output.append(char)
            else:
                output.append('\\x{:02x}'.format(byte))
        return 'b"{}"'.format(''.join(output))

    return '[{}]'.format(', '.join(format_integer(byte, 8, False, hint)
                                   for byte in bytearray(data)))


def level_style(level, bold_level=None):
    '''ANSI escape sequence that starts a line of the given level.'''
    style = COLOR_DICT[LEVEL_COLORS[level.name.lower()]]
    if bold_level is not None and level >= bold_level:
        style += BOLD
    return style


def format_frame(frame, color=False, bold_level=None, show_location=True):
    """
    Format a frame as a single display line

    :param frame: The decoded frame
    :type frame: Frame
    :param color: Wrap the line in the ANSI style of the frame's level
    :type color: bool
    :param bold_level: Also embolden frames at or above this Level
    :param show_location: Append the source file and line, if known
    :type show_location: bool

    :returns: A string containing the formatted line
    """
    output = []
    if frame.timestamp_text is not None:
        output.append(frame.timestamp_text)
    output.append(frame.level.name.upper().ljust(5))
    output.append(frame.message)

    if show_location and frame.location is not None:
        output.append('({}:{})'.format(os.path.basename(frame.location.file),
                                       frame.location.line))

    line = ' '.join(output)
    if color:
        return level_style(frame.level, bold_level) + line + COLOR_BOLD_RESET
    return line
