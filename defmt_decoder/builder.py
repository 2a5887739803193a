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
Module for recovering the format string table from a firmware image

Two metadata layouts are understood.

Symbol layout: every symbol in the `.defmt` section is one format string and
its address is the index. The symbol name is either a JSON object

    {"package": <crate>, "tag": "defmt_<level>", "data": <format>, ...}

or the bare format string, in which case the level comes from the address
ranges delimited by the `_defmt_<level>_start` / `_end` marker symbols. The
wire format version is the name of a `_defmt_version_ = <version>` symbol.

Section layout: a `.defmt_strings` section of NUL terminated records. The
first record is a header

    DEFMT=<version>,KEYS=<level>:<file>:<line>:<msg>[,CRATE=<crate>]

naming the colon separated fields of every following record. The byte offset
of a record is its index.
"""

import json
import logging
import re

from packaging import version as packaging_version

from .constants import (DEFMT_SECTION_NAME, LEVEL_MARKER_PATTERN, MAX_NESTING_DEPTH,
                        STRINGS_CRATE_TAG, STRINGS_HEADER_OFFSET, STRINGS_KEYS_TAG,
                        STRINGS_KEY_ALL_REGEX, STRINGS_KEY_NO_EMBEDDED_COLON_REGEX,
                        STRINGS_RECORD_PATTERN, STRINGS_SECTION_NAME, STRINGS_VERSION_TAG,
                        TAG_PREFIX, TAG_TIMESTAMP, TIMESTAMP_LEVEL_NAME,
                        VERSION_SYMBOL_PREFIX, WIRE_FORMAT_VERSION)
from .elf import ElfReader
from .exceptions import BuildIncompatible, TableError
from .table import Level, Location, Table, TableEntry


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

LEVEL_NAMES = [level.name.lower() for level in Level]

STRINGS_KEY_PATTERN = re.compile(r'^<\w+>$')


def check_version(marker, supported=WIRE_FORMAT_VERSION):
    """
    Check that the firmware's wire format can be read by this decoder

    :param marker: Version the firmware was built with
    :type marker: str
    :param supported: Version this decoder implements
    :type supported: str

    The major versions must be equal, and the decoder's minor and patch
    versions must not be older than the firmware's.

    :returns: The parsed marker
    """
    try:
        found = packaging_version.Version(marker)
    except packaging_version.InvalidVersion:
        raise BuildIncompatible("wire format version '{}' is not a semantic version"
                                .format(marker))

    ours = packaging_version.Version(supported)
    if found.major != ours.major:
        raise BuildIncompatible('firmware uses wire format {}, decoder supports {}.x'.format(
                                marker, ours.major))
    if (found.minor, found.micro) > (ours.minor, ours.micro):
        raise BuildIncompatible('firmware uses wire format {}, decoder only supports up to {}'
                                .format(marker, supported))
    return found


def _version_marker(name):
    # LLD keeps the quotes from the linker script in the symbol name
    name = name.strip('"')
    if name.startswith(VERSION_SYMBOL_PREFIX):
        return name[len(VERSION_SYMBOL_PREFIX):]
    return None


def _level_from_tag(tag):
    if tag.startswith(TAG_PREFIX) and tag[len(TAG_PREFIX):] in LEVEL_NAMES:
        return Level.from_name(tag[len(TAG_PREFIX):])
    return None


class SymbolTableBuilder(object):
    '''Builds a Table from a firmware image reader.

    A table is only returned once the version check has passed and every
    index has been found unique.
    '''

    def __init__(self, reader, supported_version=WIRE_FORMAT_VERSION,
                 max_depth=MAX_NESTING_DEPTH):
        self.reader = reader
        self.supported_version = supported_version
        self.max_depth = max_depth
        self.entries = []
        self.version = None
        self.timestamp = None

    def build(self):
        self.entries = []
        self.version = None
        self.timestamp = None
        symbols = list(self.reader.iter_symbols())

        if any(symbol.section == DEFMT_SECTION_NAME for symbol in symbols):
            self.collect_from_symbols(symbols)
            check_version(self.version, self.supported_version)
            self.attach_locations(symbols)
        else:
            data = self.reader.get_section_data(STRINGS_SECTION_NAME)
            if data is None:
                raise TableError('neither a {} nor a {} section was found'.format(
                                 DEFMT_SECTION_NAME, STRINGS_SECTION_NAME))
            self.collect_from_section(data)
            check_version(self.version, self.supported_version)

        table = Table(self.entries, self.version, self.timestamp, self.max_depth)
        logger.debug('Recovered %d format strings (wire format %s)', len(table), self.version)
        return table

    # Symbol layout

    def collect_from_symbols(self, symbols):
        versions = set()
        edges = {}
        candidates = []

        for symbol in symbols:
            marker = _version_marker(symbol.name)
            if marker is not None:
                versions.add(marker)
                continue

            if symbol.section != DEFMT_SECTION_NAME or not symbol.name:
                continue

            match = LEVEL_MARKER_PATTERN.match(symbol.name)
            if match:
                edges.setdefault(match.group('level'), {})[match.group('edge')] = symbol.address
            else:
                candidates.append(symbol)

        if not versions:
            raise TableError('wire format version marker not found')
        if len(versions) > 1:
            raise BuildIncompatible('multiple wire format versions in use: {} '
                                    '(only one is supported)'.format(', '.join(sorted(versions))))
        self.version = versions.pop()

        ranges = {}
        for level_name, edge in edges.items():
            if 'start' not in edge or 'end' not in edge:
                raise TableError('`_defmt_{}_*` marker symbols are incomplete'.format(level_name))
            ranges[Level.from_name(level_name)] = (edge['start'], edge['end'])

        for symbol in candidates:
            self.add_entry(self.entry_from_symbol(symbol, ranges))

    def entry_from_symbol(self, symbol, ranges):
        meta = None
        if symbol.name.startswith('{'):
            try:
                meta = json.loads(symbol.name)
            except ValueError:
                meta = None

        if isinstance(meta, dict) and 'tag' in meta and 'data' in meta:
            return TableEntry(symbol.address, meta['data'], _level_from_tag(meta['tag']), None,
                              meta.get('package', ''), meta['tag'])

        level = None
        for candidate, (start, end) in ranges.items():
            if start <= symbol.address < end:
                level = candidate
        tag = TAG_PREFIX + level.name.lower() if level is not None else ''
        return TableEntry(symbol.address, symbol.name, level, None, '', tag)

    def attach_locations(self, symbols):
        '''Fill in source locations from the debug info.

        Locations are only used if every log statement has one.
        '''
        live = set(symbol.name for symbol in symbols if symbol.section == DEFMT_SECTION_NAME)
        locations = {}
        for linkage_name, address, location in self.reader.iter_log_statement_locations():
            if linkage_name not in live:
                # garbage collected by the linker; the DWARF entry remains
                continue
            if address in locations:
                raise TableError('location collision for index 0x{:08x} ({} and {})'.format(
                                 address, locations[address], location))
            locations[address] = location

        if not locations:
            return

        if all(entry.index in locations for entry in self.entries if entry.level is not None):
            self.entries = [entry._replace(location=locations.get(entry.index))
                            for entry in self.entries]
        else:
            logger.warning('Location info is incomplete; it will be omitted from the output')

    # Section layout

    def parse_header(self, header):
        key_list = None
        crate_name = ''
        for field in header.split(','):
            tag, _, value = field.partition('=')
            if tag == STRINGS_VERSION_TAG:
                self.version = value
            elif tag == STRINGS_KEYS_TAG:
                key_list = value.split(':')
            elif tag == STRINGS_CRATE_TAG:
                crate_name = value
            else:
                raise TableError("Unknown header tag '{}'".format(field))

        if self.version is None:
            raise TableError('wire format version marker not found')
        if not key_list or '<msg>' not in key_list:
            raise TableError("header does not describe the record keys: '{}'".format(header))

        regex = []
        for key in key_list:
            if not STRINGS_KEY_PATTERN.match(key):
                raise TableError("malformed record key '{}'".format(key))
            if key == '<msg>':
                regex.append(STRINGS_KEY_ALL_REGEX.format(key))  # Allow embedded colons
            else:
                regex.append(STRINGS_KEY_NO_EMBEDDED_COLON_REGEX.format(key))

        return re.compile(':'.join(regex)), crate_name

    def collect_from_section(self, data):
        data = bytes(data)
        header = data[:data.find(b'\0')].decode('ascii', 'replace')
        record_regex, crate_name = self.parse_header(header)

        for record in STRINGS_RECORD_PATTERN.finditer(data):
            # Skip the header record
            if record.start() == STRINGS_HEADER_OFFSET:
                continue

            try:
                text = record.group(1).decode('utf-8')
            except UnicodeDecodeError as e:
                raise TableError('record at offset {} is not UTF-8: {}'.format(
                                 record.start(), e))

            match = record_regex.fullmatch(text)
            if not match:
                raise TableError("malformed record at offset {}: '{}'".format(
                                 record.start(), text))
            self.add_entry(self.entry_from_record(record.start(), match.groupdict(),
                                                  crate_name))

    def entry_from_record(self, index, fields, crate_name):
        level_name = fields.get('level') or ''
        if level_name == TIMESTAMP_LEVEL_NAME:
            level, tag = None, TAG_TIMESTAMP
        elif level_name:
            try:
                level = Level.from_name(level_name)
            except ValueError as e:
                raise TableError('record at offset {}: {}'.format(index, e))
            tag = TAG_PREFIX + level_name
        else:
            level, tag = None, TAG_PREFIX + 'fmt'

        location = None
        if fields.get('file'):
            line = fields.get('line') or ''
            location = Location(fields.get('module') or '', fields['file'],
                                int(line) if line.isdigit() else None)

        return TableEntry(index, fields['msg'], level, location,
                          fields.get('crate') or crate_name, tag)

    def add_entry(self, entry):
        if entry.tag == TAG_TIMESTAMP:
            if self.timestamp is not None:
                raise TableError('more than one timestamp format declared')
            self.timestamp = entry.index
        self.entries.append(entry)


def load_table(filename, **kwargs):
    '''Recover the table from the firmware ELF at `filename`.'''
    with open(filename, 'rb') as stream:
        return SymbolTableBuilder(ElfReader(stream), **kwargs).build()
