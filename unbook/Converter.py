#!/usr/bin/env python
#  -*- mode: python; indent-tabs-mode: nil; -*- coding: UTF8 -*-

"""

Converter.py

Copyright 2024 by the unbook contributors

Distributable under the GNU General Public License Version 3 or newer.

Turn any ebook calibre reads into HTMLZ, by running ebook-convert.

"""

import os
import random
import string
import subprocess
import tempfile

from libgutenberg.Logger import debug, info, warning

from unbook.CommonCode import UnbookBadFileException, UnbookFatalError
from unbook.writers.HtmlTemplates import MARKER

# ebook-convert runs python, which on Windows needs some of these
KEEP_ENVIRONMENT = ('SystemDrive', 'SystemRoot', 'TEMP', 'TMP', 'PATH')

CALIBRE_ARGS = (
    # -vv makes calibre tell its version
    '-vv',
    '--margin-top=0',
    '--margin-bottom=0',
    '--margin-left=0',
    '--margin-right=0',
    '--minimum-line-height=0',
)

HIDDEN = '[...]'


def sniff_input(ebook_path):
    """ Refuse input we can't make a good html file from.

    Raises UnbookBadFileException.

    """

    try:
        with open(ebook_path, 'rb') as fp:
            first_4k = fp.read(4096)
    except OSError as what:
        raise UnbookBadFileException('Cannot read input file %s: %s' % (ebook_path, what))

    if MARKER.encode('ascii') in first_4k:
        raise UnbookBadFileException(
            'Input file %s was produced by unbook, refusing to convert it' % ebook_path)
    if first_4k.startswith(b'%PDF-'):
        raise UnbookBadFileException(
            'Input file %s is a PDF, refusing to create a poor HTML conversion' % ebook_path)
    if first_4k[60:68] == b'BOOKMOBI':
        with open(ebook_path, 'rb') as fp:
            if b'%MOP' in fp.read():
                raise UnbookBadFileException(
                    'Input file %s is a MOBI with a PDF inside, possibly an AZW4 Print Replica, '
                    'refusing to create a poor HTML conversion' % ebook_path)


def filter_calibre_log(log):
    """ Hide the input and output paths in an ebook-convert -vv log. """

    out = []
    fix_next_line = False
    for line in log.splitlines():
        if fix_next_line:
            fix_next_line = False
            if line.startswith('on '):
                out.append('on ' + HIDDEN)
                continue
        if line.startswith('InputFormatPlugin: '):
            fix_next_line = True
        elif line.startswith('HTMLZ output written to '):
            line = 'HTMLZ output written to ' + HIDDEN
        elif line.startswith('Output saved to '):
            line = 'Output saved to ' + HIDDEN
        out.append(line)
    return '\n'.join(out) + '\n' if out else ''


def converter_environment():
    return {name: os.environ[name] for name in KEEP_ENVIRONMENT if name in os.environ}


def temporary_htmlz_path():
    random_part = ''.join(random.choice(string.ascii_letters + string.digits) for _ in range(12))
    return os.path.join(tempfile.gettempdir(), 'unbook-%s.htmlz' % random_part)


def run_ebook_convert(job, ebook_convert='ebook-convert'):
    """ Convert job.ebook_path to htmlz.

    Sets job.htmlz_path, job.converter_stderr and job.converter_log.
    Raises UnbookFatalError if the converter fails.

    """

    job.htmlz_path = temporary_htmlz_path()
    cmd = [ebook_convert, job.ebook_path, job.htmlz_path] + list(CALIBRE_ARGS)
    info('Running %s' % ' '.join(cmd))

    try:
        calibre = subprocess.run(
            cmd,
            env=converter_environment(),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE
        )
    except OSError as what:
        raise UnbookFatalError(
            'Failed to run calibre %s: %s. Is ebook-convert in your PATH? '
            '(see also --ebook-convert)' % (ebook_convert, what))

    stderr = calibre.stderr.decode('utf-8', 'replace')
    if calibre.returncode < 0:
        raise UnbookFatalError(
            '%s was terminated by signal %d:\n\n%s' % (ebook_convert, -calibre.returncode, stderr))
    if calibre.returncode > 0:
        raise UnbookFatalError(
            '%s failed with exit status %d:\n\n%s' % (ebook_convert, calibre.returncode, stderr))

    if not os.path.isfile(job.htmlz_path):
        raise UnbookFatalError(
            '%s succeeded, but wrote no HTMLZ file at %s' % (ebook_convert, job.htmlz_path))

    job.converter_stderr = stderr
    job.converter_log = filter_calibre_log(calibre.stdout.decode('utf-8', 'replace'))
    debug('%s wrote %s' % (ebook_convert, job.htmlz_path))
    return job.htmlz_path


def remove_htmlz(job, keep=False):
    """ Remove the temporary htmlz file unless keep. """

    if not job.htmlz_path:
        return
    if keep:
        info('Keeping temporary HTMLZ file %s' % job.htmlz_path)
        return
    try:
        os.remove(job.htmlz_path)
    except OSError as what:
        warning('Failed to remove temporary HTMLZ file %s: %s' % (job.htmlz_path, what))
