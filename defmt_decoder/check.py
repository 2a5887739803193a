#!/usr/bin/env python
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


import argparse
import logging
import sys

from .builder import load_table
from .exceptions import DefmtException, MalformedDirective


def check_elf_format_strings(filename):
    """ Top Level API """
    try:
        table = load_table(filename)
    except DefmtException as e:
        return 'Unable to get format strings: {}'.format(e)

    return check_table(table)


def check_table(table):
    """ Return complete error string rather than raise an exception on the first. """
    output = []

    for entry in table:
        where = "'{}'".format(entry.raw_format)
        if entry.location is not None:
            where = '{} ({})'.format(where, entry.location)

        try:
            table.parsed(entry.index)
        except MalformedDirective as e:
            output.append('{} is malformed: {}'.format(where, e))
            continue

        # RULE: the timestamp format is not a log statement
        if table.timestamp is not None and entry.index == table.timestamp.index and \
                entry.level is not None:
            output.append('{} is both the timestamp and a log statement'.format(where))

    if output:
        output.insert(0, 'Format String Error{}:'.format('s' if len(output) > 1 else ''))

    return '\n'.join(output)


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Check .elf format strings for errors')

    parser.add_argument('elf_path', help='path to the firmware .elf to check')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='log table construction details')
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    output = check_elf_format_strings(args.elf_path)

    if output:
        print(output)
        sys.exit(1)
