#!/usr/bin/env python
#  -*- mode: python; indent-tabs-mode: nil; -*- coding: UTF8 -*-

"""

Version.py

Copyright 2024 by the unbook contributors

Distributable under the GNU General Public License Version 3 or newer.

"""

VERSION = '0.9.1'

GENERATOR = 'unbook %s' % VERSION
