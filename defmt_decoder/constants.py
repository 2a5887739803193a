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
Constants used in this module
"""

import re

# Wire format revision this decoder understands
WIRE_FORMAT_VERSION = '0.2.1'

# Symbol layout
DEFMT_SECTION_NAME = '.defmt'
SYMBOL_TABLE_SECTION_NAME = '.symtab'
VERSION_SYMBOL_PREFIX = '_defmt_version_ = '
LEVEL_MARKER_REGEX = r'^_defmt_(?P<level>trace|debug|info|warn|error)_(?P<edge>start|end)$'
LOG_STATEMENT_VARIABLE = 'DEFMT_LOG_STATEMENT'

# Section layout
STRINGS_SECTION_NAME = '.defmt_strings'
STRINGS_HEADER_OFFSET = 0
STRINGS_VERSION_TAG = 'DEFMT'
STRINGS_KEYS_TAG = 'KEYS'
STRINGS_CRATE_TAG = 'CRATE'
STRINGS_RECORD_REGEX = r'([^\0]+)\0'    # <anything but '\0'> followed by '\0'
STRINGS_KEY_ALL_REGEX = '(?P{}.*)'                    # matches anything (group name {})
STRINGS_KEY_NO_EMBEDDED_COLON_REGEX = '(?P{}[^:]*?)'  # matches anything without a colon

# Metadata tags
TAG_PREFIX = 'defmt_'
TAG_TIMESTAMP = 'defmt_timestamp'
TIMESTAMP_LEVEL_NAME = 'timestamp'

# Decoding limits
MAX_NESTING_DEPTH = 32
MAX_LEB128_BYTES = 10
MAX_SLICE_LENGTH = 1 << 16

# Directive grammar
POSITION_REGEX = r'^(?P<position>\d+)?(?:=(?P<type>[^:]*))?(?::(?P<hint>.*))?$'
BITFIELD_REGEX = r'^u(?P<width>8|16|32|64)\[(?P<low>\d+)\.\.=(?P<high>\d+)\]$'
BYTE_ARRAY_REGEX = r'^\[u8;\s*(?P<length>\d+)\]$'
FIXED_NESTED_REGEX = r'^@(?P<index>\d+)$'
HINT_REGEX = r'^(?P<alternate>#)?(?P<zero>0)?(?P<width>[1-9]\d*)?(?P<kind>x|X|b|o|e|E|a|\?|us|\xb5s)$'

# re patterns
LEVEL_MARKER_PATTERN = re.compile(LEVEL_MARKER_REGEX)
STRINGS_RECORD_PATTERN = re.compile(STRINGS_RECORD_REGEX.encode('ascii'))
POSITION_PATTERN = re.compile(POSITION_REGEX)
BITFIELD_PATTERN = re.compile(BITFIELD_REGEX)
BYTE_ARRAY_PATTERN = re.compile(BYTE_ARRAY_REGEX)
FIXED_NESTED_PATTERN = re.compile(FIXED_NESTED_REGEX)
HINT_PATTERN = re.compile(HINT_REGEX)

# Terminal styling
COLOR_DICT = {
               "RED":           "\x1b[31m",
               "GREEN":         "\x1b[32m",
               "YELLOW":        "\x1b[33m",
               "LIGHT_GREY":    "\x1b[1;30m",
               "WHITE":         "\x1b[1;37m"}
COLOR_BOLD_RESET = "\x1b[0m"
BOLD = "\x1b[1m"

LEVEL_COLORS = {
    'trace': 'LIGHT_GREY',
    'debug': 'WHITE',
    'info':  'GREEN',
    'warn':  'YELLOW',
    'error': 'RED',
}
