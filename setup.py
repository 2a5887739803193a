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

# Always prefer setuptools over distutils
from setuptools import setup, find_packages
# To use a consistent encoding
from codecs import open
from os import path

here = path.abspath(path.dirname(__file__))

# Get the long description from the README file
with open(path.join(here, 'README.rst'), encoding='utf-8') as f:
    long_description = f.read()

requires = [
        'packaging>=20.0',
        'pyelftools>=0.29',
        'transitions>=0.4.0',
]

test_requires = [
        'pytest',
]

setup(
    name='defmt-decoder',
    version='0.2.1',
    description='Host-side decoder for deferred-formatting firmware logs',
    long_description=long_description,
    author='Google LLC',

    packages=find_packages(exclude=['contrib', 'docs', 'tests']),
    python_requires='>=3.6',

    install_requires=requires,

    extras_require={
        'test': test_requires,
    },
    test_suite = 'tests',
)
