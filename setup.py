#!/usr/bin/env python

# Copyright 2013 - 2018, New York University and the TUF contributors
# SPDX-License-Identifier: MIT OR Apache-2.0

"""
<Program Name>
  setup.py

<Purpose>
  BUILD SOURCE DISTRIBUTION

  The following shell command generates a tufnotary source archive that can
  be distributed to other users.  The packaged source is saved to the 'dist'
  folder in the current directory.

  $ python setup.py sdist


  INSTALLATION OPTIONS

  # From the root directory of the unpacked archive.
  $ pip install .

  # With the test requirements.
  $ pip install .[test]
"""

from setuptools import setup
from setuptools import find_packages


with open('README.md') as file_object:
  long_description = file_object.read()


setup(
  name = 'tufnotary',
  version = '1.0.0', # also update tufnotary/__init__.py
  description = 'Publish signed trust data for container image repositories',
  long_description = long_description,
  long_description_content_type='text/markdown',
  keywords = 'notary docker content trust signing root rotation',
  classifiers = [
    'Development Status :: 4 - Beta',
    'Intended Audience :: Developers',
    'License :: OSI Approved :: MIT License',
    'License :: OSI Approved :: Apache Software License',
    'Natural Language :: English',
    'Operating System :: POSIX',
    'Operating System :: POSIX :: Linux',
    'Operating System :: MacOS :: MacOS X',
    'Programming Language :: Python',
    'Programming Language :: Python :: 3',
    'Programming Language :: Python :: 3 :: Only',
    'Programming Language :: Python :: Implementation :: CPython',
    'Topic :: Security',
    'Topic :: Software Development'
  ],
  python_requires=">=3.8, <4",
  install_requires = [
    'iso8601>=1.0.0',
    'requests>=2.19.1',
    'urllib3>=1.26',
    'securesystemslib[crypto]>=1.0.0',
    'cryptography>=42.0.0',
    'pyasn1>=0.4.8',
    'pyasn1-modules>=0.2.8',
  ],
  extras_require = {
    'test': [
      'pytest',
    ],
  },
  packages = find_packages(exclude=['tests', 'tests.*']),
  scripts = [
    'tufnotary/scripts/tufnotary_publish.py',
  ]
)
