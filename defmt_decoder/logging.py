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

import logging

TRACE = 5
logging.addLevelName(TRACE, 'TRACE')

# Level.name -> logging level
LEVEL_MAP = {
    'Trace': TRACE,
    'Debug': logging.DEBUG,
    'Info':  logging.INFO,
    'Warn':  logging.WARNING,
    'Error': logging.ERROR,
}


class TaggedAdapter(logging.LoggerAdapter):
    '''Annotates all log messages with a "[tag]" prefix.

    The value of the tag is specified in the dict argument passed into
    the adapter's constructor.

    >>> logger = logging.getLogger(__name__)
    >>> adapter = TaggedAdapter(logger, {'tag': 'tag value'})
    '''

    def process(self, msg, kwargs):
        return '[%s] %s' % (self.extra['tag'], msg), kwargs


def log_frame(frame, logger):
    '''Forward a decoded frame into the standard logging tree.

    The record carries the frame as `defmt_frame`, and the firmware source
    location (when known) as its pathname and line number.
    '''
    level = LEVEL_MAP[frame.level.name]
    if not logger.isEnabledFor(level):
        return

    pathname, lineno = '(firmware)', 0
    if frame.location is not None:
        pathname, lineno = frame.location.file, frame.location.line

    record = logger.makeRecord(
            logger.name, level, pathname, lineno, '%s', (frame.message,), None,
            extra={'defmt_frame': frame, 'defmt_timestamp': frame.timestamp_text})
    logger.handle(record)
