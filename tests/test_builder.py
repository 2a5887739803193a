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

import unittest
from unittest import mock

from defmt_decoder import builder
from defmt_decoder.builder import SymbolTableBuilder, check_version
from defmt_decoder.constants import DEFMT_SECTION_NAME, STRINGS_SECTION_NAME
from defmt_decoder.elf import Symbol
from defmt_decoder.exceptions import BuildIncompatible, DuplicateIndex, TableError
from defmt_decoder.table import Level, Location

from .fake_reader import FakeReader, json_symbol, version_symbol


class TestCheckVersion(unittest.TestCase):

    def test_same(self):
        self.assertEqual(str(check_version('0.2.1', '0.2.1')), '0.2.1')

    def test_older_firmware(self):
        check_version('0.1.0', '0.2.1')
        check_version('0.2.0', '0.2.1')

    def test_newer_minor(self):
        with self.assertRaises(BuildIncompatible):
            check_version('0.3.0', '0.2.1')

    def test_newer_patch(self):
        with self.assertRaises(BuildIncompatible):
            check_version('0.2.2', '0.2.1')

    def test_major_mismatch(self):
        with self.assertRaises(BuildIncompatible):
            check_version('1.0.0', '0.2.1')
        with self.assertRaises(BuildIncompatible):
            check_version('0.2.1', '1.2.1')

    def test_not_a_version(self):
        with self.assertRaises(BuildIncompatible):
            check_version('banana', '0.2.1')


class TestSymbolLayout(unittest.TestCase):

    def build(self, symbols, locations=()):
        return SymbolTableBuilder(FakeReader(symbols, locations=locations)).build()

    def test_json_symbols(self):
        table = self.build([
            version_symbol(),
            json_symbol(1, 'hello {=u8}', 'defmt_info', 'app'),
            json_symbol(2, 'oops', 'defmt_error', 'drivers'),
            json_symbol(3, '{=u8}', 'defmt_write'),
            Symbol('main', 0x8000, '.text'),
        ])
        self.assertEqual(table.indices(), [1, 2, 3])
        self.assertEqual(table.version, '0.2.1')
        self.assertIs(table.get(1).level, Level.Info)
        self.assertIs(table.get(2).level, Level.Error)
        self.assertEqual(table.get(2).crate_name, 'drivers')
        self.assertIsNone(table.get(3).level)
        self.assertIsNone(table.timestamp)

    def test_timestamp_symbol(self):
        table = self.build([
            version_symbol(),
            json_symbol(1, 'hello', 'defmt_info'),
            json_symbol(2, '{=u32:us}', 'defmt_timestamp'),
        ])
        self.assertEqual(table.timestamp.index, 2)
        self.assertIsNone(table.timestamp.level)

    def test_two_timestamps(self):
        with self.assertRaises(TableError):
            self.build([
                version_symbol(),
                json_symbol(1, '{=u32}', 'defmt_timestamp'),
                json_symbol(2, '{=u64}', 'defmt_timestamp'),
            ])

    def test_plain_symbols_with_level_ranges(self):
        table = self.build([
            Symbol('"_defmt_version_ = 0.2.0"', 1, None),
            Symbol('_defmt_debug_start', 0, DEFMT_SECTION_NAME),
            Symbol('debug {=u8}', 0, DEFMT_SECTION_NAME),
            Symbol('_defmt_debug_end', 1, DEFMT_SECTION_NAME),
            Symbol('_defmt_warn_start', 1, DEFMT_SECTION_NAME),
            Symbol('warn one', 1, DEFMT_SECTION_NAME),
            Symbol('warn two', 2, DEFMT_SECTION_NAME),
            Symbol('_defmt_warn_end', 3, DEFMT_SECTION_NAME),
            Symbol('interned', 5, DEFMT_SECTION_NAME),
        ])
        self.assertEqual(table.version, '0.2.0')
        self.assertIs(table.get(0).level, Level.Debug)
        self.assertIs(table.get(1).level, Level.Warn)
        self.assertIs(table.get(2).level, Level.Warn)
        self.assertIsNone(table.get(5).level)
        self.assertEqual(table.get(1).raw_format, 'warn one')

    def test_incomplete_level_range(self):
        with self.assertRaises(TableError):
            self.build([
                version_symbol(),
                Symbol('_defmt_info_start', 0, DEFMT_SECTION_NAME),
                Symbol('hello', 0, DEFMT_SECTION_NAME),
            ])

    def test_duplicate_index(self):
        with self.assertRaises(DuplicateIndex):
            self.build([
                version_symbol(),
                json_symbol(4, 'first', 'defmt_info'),
                json_symbol(4, 'second', 'defmt_info'),
            ])

    def test_missing_version(self):
        with self.assertRaises(TableError):
            self.build([json_symbol(1, 'hello', 'defmt_info')])

    def test_newer_version(self):
        with self.assertRaises(BuildIncompatible):
            self.build([version_symbol('1.0.0'), json_symbol(1, 'hello', 'defmt_info')])

    def test_multiple_versions(self):
        with self.assertRaises(BuildIncompatible):
            self.build([
                version_symbol('0.2.0'),
                version_symbol('0.2.1'),
                json_symbol(1, 'hello', 'defmt_info'),
            ])

    def test_supported_version_override(self):
        reader = FakeReader([version_symbol('0.3.0'), json_symbol(1, 'hello', 'defmt_info')])
        table = SymbolTableBuilder(reader, supported_version='0.3.0').build()
        self.assertEqual(table.version, '0.3.0')

    def test_build_twice(self):
        reader = FakeReader([version_symbol(), json_symbol(1, 'a', 'defmt_info'),
                             json_symbol(2, '{=u32}', 'defmt_timestamp')])
        table_builder = SymbolTableBuilder(reader)
        first = table_builder.build()
        second = table_builder.build()
        self.assertEqual(first.entries(), second.entries())
        self.assertEqual(second.timestamp.index, 2)

    def test_build_after_failure(self):
        reader = FakeReader([version_symbol(), json_symbol(1, 'a', 'defmt_info'),
                             json_symbol(1, 'b', 'defmt_info')])
        table_builder = SymbolTableBuilder(reader)
        with self.assertRaises(DuplicateIndex):
            table_builder.build()
        reader.symbols = [version_symbol(), json_symbol(1, 'a', 'defmt_info')]
        self.assertEqual(table_builder.build().get(1).raw_format, 'a')

    def test_max_depth(self):
        reader = FakeReader([version_symbol(), json_symbol(1, 'hello', 'defmt_info')])
        self.assertEqual(SymbolTableBuilder(reader, max_depth=3).build().max_depth, 3)

    def test_no_metadata(self):
        with self.assertRaises(TableError):
            self.build([Symbol('main', 0x8000, '.text')])


class TestLocations(unittest.TestCase):

    def setUp(self):
        self.hello = json_symbol(1, 'hello', 'defmt_info')
        self.bye = json_symbol(2, 'bye', 'defmt_warn')
        self.symbols = [version_symbol(), self.hello, self.bye,
                        json_symbol(3, '{=u8}', 'defmt_write')]

    def build(self, locations):
        return SymbolTableBuilder(FakeReader(self.symbols, locations=locations)).build()

    def test_complete(self):
        table = self.build([
            (self.hello.name, 1, Location('app', '/src/main.rs', 10)),
            (self.bye.name, 2, Location('app::net', '/src/net.rs', 20)),
        ])
        self.assertEqual(table.get(1).location, Location('app', '/src/main.rs', 10))
        self.assertEqual(table.get(2).location.module, 'app::net')
        self.assertIsNone(table.get(3).location)

    def test_incomplete_is_omitted(self):
        with self.assertLogs('defmt_decoder.builder', 'WARNING'):
            table = self.build([(self.hello.name, 1, Location('app', '/src/main.rs', 10))])
        self.assertIsNone(table.get(1).location)
        self.assertIsNone(table.get(2).location)

    def test_no_debug_info(self):
        table = self.build([])
        self.assertIsNone(table.get(1).location)

    def test_collected_statements_ignored(self):
        table = self.build([
            (self.hello.name, 1, Location('app', '/src/main.rs', 10)),
            (self.bye.name, 2, Location('app', '/src/main.rs', 11)),
            ('{"package":"app","tag":"defmt_info","data":"gone"}', 1,
                Location('app', '/src/dead.rs', 5)),
        ])
        self.assertEqual(table.get(1).location.file, '/src/main.rs')

    def test_collision(self):
        with self.assertRaises(TableError):
            self.build([
                (self.hello.name, 1, Location('app', '/src/main.rs', 10)),
                (self.hello.name, 1, Location('app', '/src/other.rs', 3)),
            ])


class TestSectionLayout(unittest.TestCase):

    HEADER = b'DEFMT=0.2.1,KEYS=<level>:<file>:<line>:<msg>,CRATE=app\0'

    def build(self, data):
        reader = FakeReader(sections={STRINGS_SECTION_NAME: data})
        return SymbolTableBuilder(reader).build()

    def test_records(self):
        first = b'info:src/main.rs:10:booted: {=u32} ms\0'
        second = b'timestamp:::{=u64:us}\0'
        third = b':::{=u8}\0'
        table = self.build(self.HEADER + first + second + third)

        index = len(self.HEADER)
        entry = table.get(index)
        self.assertEqual(entry.raw_format, 'booted: {=u32} ms')
        self.assertIs(entry.level, Level.Info)
        self.assertEqual(entry.location, Location('', 'src/main.rs', 10))
        self.assertEqual(entry.crate_name, 'app')

        index += len(first)
        self.assertEqual(table.timestamp.index, index)
        self.assertEqual(table.timestamp.raw_format, '{=u64:us}')

        index += len(second)
        self.assertIsNone(table.get(index).level)
        self.assertIsNone(table.get(index).location)

    def test_non_ascii_offsets_are_bytes(self):
        first = 'info:m.rs:1:caf\xe9\0'.encode('utf-8')
        second = b'warn:m.rs:2:next\0'
        table = self.build(self.HEADER + first + second)
        self.assertEqual(table.get(len(self.HEADER) + len(first)).raw_format, 'next')

    def test_version_checked(self):
        with self.assertRaises(BuildIncompatible):
            self.build(b'DEFMT=0.9.0,KEYS=<level>:<msg>\0info:hi\0')

    def test_unknown_header_tag(self):
        with self.assertRaises(TableError):
            self.build(b'DEFMT=0.2.1,KEYS=<level>:<msg>,COLOR=red\0')

    def test_missing_msg_key(self):
        with self.assertRaises(TableError):
            self.build(b'DEFMT=0.2.1,KEYS=<level>:<file>\0')

    def test_unknown_level(self):
        with self.assertRaises(TableError):
            self.build(b'DEFMT=0.2.1,KEYS=<level>:<msg>\0fatal:hi\0')

    def test_malformed_record(self):
        with self.assertRaises(TableError):
            self.build(self.HEADER + b'info:no line number\0')


class TestLoadTable(unittest.TestCase):

    @mock.patch('defmt_decoder.builder.ElfReader')
    def test_load_table(self, elf_reader):
        elf_reader.return_value = FakeReader([version_symbol(),
                                              json_symbol(1, 'hello', 'defmt_info')])
        with mock.patch('defmt_decoder.builder.open', mock.mock_open(), create=True) as m:
            table = builder.load_table('firmware.elf')
        m.assert_called_once_with('firmware.elf', 'rb')
        self.assertEqual(table.get(1).raw_format, 'hello')
