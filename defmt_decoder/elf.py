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
Firmware image reader

SymbolTableBuilder only needs three things from a firmware image, and any
object providing them can stand in for ElfReader:

- iter_symbols(): every symbol as a Symbol(name, address, section)
- get_section_data(name): the raw bytes of a section, or None
- iter_log_statement_locations(): (linkage_name, address, Location) for each
  log statement variable described in the debug info
'''

import collections
import logging
import os

from elftools.dwarf.dwarf_expr import DWARFExprParser
from elftools.elf.elffile import ELFFile
from elftools.elf.sections import SymbolTableSection

from .constants import LOG_STATEMENT_VARIABLE, SYMBOL_TABLE_SECTION_NAME
from . import logging as defmt_logging
from .table import Location


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

LOCATION_FORMS = ('DW_FORM_exprloc', 'DW_FORM_block1', 'DW_FORM_block2',
                  'DW_FORM_block4', 'DW_FORM_block')


class Symbol(collections.namedtuple('Symbol', 'name address section')):

    __slots__ = ()


def _attr_string(die, name):
    attr = die.attributes.get(name)
    if attr is None:
        return None
    value = attr.value
    if isinstance(value, bytes):
        return value.decode('utf-8', 'replace')
    return str(value)


def _namespaces(die):
    names = []
    parent = die.get_parent()
    while parent is not None:
        if parent.tag == 'DW_TAG_namespace':
            names.append(_attr_string(parent, 'DW_AT_name') or '')
        parent = parent.get_parent()
    return list(reversed(names))


def _location_address(expr_parser, attr):
    if attr.form not in LOCATION_FORMS:
        return None
    for op in expr_parser.parse_expr(attr.value):
        if op.op_name == 'DW_OP_addr':
            return op.args[0]
    return None


def _file_path(line_program, file_index, comp_dir):
    if line_program is None:
        return None

    header = line_program.header
    # DWARF 5 file and directory tables are zero based, earlier ones one based
    base = 0 if header['version'] >= 5 else 1
    if file_index < base:
        return None
    try:
        file_entry = header['file_entry'][file_index - base]
    except IndexError:
        return None

    name = file_entry.name.decode('utf-8', 'replace')
    directory = ''
    dir_index = file_entry.dir_index
    if dir_index >= base:
        try:
            directory = header['include_directory'][dir_index - base].decode('utf-8',
                                                                             'replace')
        except IndexError:
            directory = ''

    path = os.path.join(directory, name)
    if not os.path.isabs(path) and comp_dir:
        path = os.path.join(comp_dir, path)
    return path


class ElfReader(object):
    '''pyelftools backed firmware image reader.

    The stream must stay open for as long as the reader is used.
    '''

    def __init__(self, stream, name=None):
        self.elf = ELFFile(stream)
        self.logger = defmt_logging.TaggedAdapter(
                logger, {'tag': name or getattr(stream, 'name', type(self).__name__)})

    def iter_symbols(self):
        symtab = self.elf.get_section_by_name(SYMBOL_TABLE_SECTION_NAME)
        if symtab is None or not isinstance(symtab, SymbolTableSection):
            self.logger.warning('No symbol table; was the image stripped?')
            return

        section_names = [section.name for section in self.elf.iter_sections()]
        for symbol in symtab.iter_symbols():
            shndx = symbol['st_shndx']
            section = None
            if isinstance(shndx, int) and shndx < len(section_names):
                section = section_names[shndx]
            yield Symbol(symbol.name, symbol['st_value'], section)

    def get_section_data(self, name):
        section = self.elf.get_section_by_name(name)
        return section.data() if section is not None else None

    def iter_log_statement_locations(self, variable_name=LOG_STATEMENT_VARIABLE):
        if not self.elf.has_dwarf_info():
            self.logger.debug('No DWARF info; locations unavailable')
            return

        dwarf = self.elf.get_dwarf_info()
        for cu in dwarf.iter_CUs():
            comp_dir = _attr_string(cu.get_top_DIE(), 'DW_AT_comp_dir')
            line_program = dwarf.line_program_for_CU(cu)
            expr_parser = DWARFExprParser(cu.structs)

            for die in cu.iter_DIEs():
                if die.tag != 'DW_TAG_variable':
                    continue
                if _attr_string(die, 'DW_AT_name') != variable_name:
                    continue

                attrs = die.attributes
                linkage_name = _attr_string(die, 'DW_AT_linkage_name')
                if linkage_name is None or 'DW_AT_decl_file' not in attrs or \
                        'DW_AT_decl_line' not in attrs or 'DW_AT_location' not in attrs:
                    continue

                address = _location_address(expr_parser, attrs['DW_AT_location'])
                if address is None:
                    continue

                path = _file_path(line_program, attrs['DW_AT_decl_file'].value, comp_dir)
                if path is None:
                    continue

                location = Location('::'.join(_namespaces(die)), path,
                                    attrs['DW_AT_decl_line'].value)
                # the linkage name carries an `@<disambiguator>` suffix
                yield linkage_name.split('@', 1)[0], address, location
