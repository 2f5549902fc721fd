#!/usr/bin/env python
#  -*- mode: python; indent-tabs-mode: nil; -*- coding: utf-8 -*-

"""
HtmlTemplates.py

Copyright 2024 by the unbook contributors

Distributable under the GNU General Public License Version 3 or newer.

Use f-strings to render what unbook adds to the head of a document.
"""

import importlib.resources
import re

import lxml.html
from lxml import etree

from libgutenberg.Logger import warning

from unbook.FontStacks import CATEGORIES
from unbook.Version import VERSION

MARKER = 'ebook converted to HTML with unbook'

POLYFILL_RESOURCE = 'text-fragments-polyfill.js'

POLYFILL_URL = 'https://unpkg.com/text-fragments-polyfill'

# not allowed in xml, and so not in lxml comments
RE_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f]')

# directive -> what we always allow
CSP_BASE = (
    ('default', "'none'"),
    ('font', "'self' data:"),
    ('img', "'self' data:"),
    ('style', "'unsafe-inline'"),
    ('media', "'self' data:"),
    ('script', "'unsafe-inline' data:"),
    ('object', "'self' data:"),
)


def base_css(options):
    """ Variables and defaults, goes before the book css. """

    return f'''/* unbook */

:root {{
    --base-font-size: {options.base_font_size};
    --base-font-family: {options.base_font_family};
    --monospace-font-family: {options.monospace_font_family};
    --min-font-size: {options.min_font_size};
    --min-line-height: {options.min_line_height};
    --inside-margin-when-wide: {options.inside_margin_when_wide};
    --inside-margin-when-narrow: {options.inside_margin_when_narrow};
    --outside-bgcolor: {options.outside_bgcolor};
    --inside-bgcolor: {options.inside_bgcolor};
}}

html {{
    background-color: var(--outside-bgcolor);
}}

body {{
    background-color: var(--inside-bgcolor);
    max-width: {options.max_width};
    margin: 0 auto;
    padding: var(--inside-margin-when-narrow);
    line-height: var(--min-line-height);
    font-size: var(--base-font-size);
    -webkit-text-size-adjust: none;
    text-size-adjust: none;
    font-family: var(--base-font-family);
    word-break: break-word;
}}

pre, code, kbd, samp, tt {{
    font-family: var(--monospace-font-family);
}}
'''


def constraints_css(options):
    """ Rules that must win over the book css, goes after it. """

    narrow = options.inside_margin_when_narrow
    return f'''/* unbook */

@media only screen and (min-width: calc({narrow} + {options.max_width} + {narrow})) {{
    body {{
        padding: var(--inside-margin-when-wide);
    }}
}}

sup, sub {{
    vertical-align: baseline !important;
    position: relative;
    top: -0.4em;
}}

sub {{
    top: 0.4em;
}}

img {{
    max-width: 100%;
    height: auto !important;
    width: auto !important;
    vertical-align: middle;
}}

img.unbook-cover {{
    display: block;
    margin: 1em auto;
}}
'''


def csp_content(options):
    """ The Content-Security-Policy, with the extra sources configured. """

    extras = options.csp_sources()
    directives = []
    for directive, sources in CSP_BASE:
        extra = extras.get(directive)
        if extra:
            sources = f'{sources} {extra}'
        directives.append(f'{directive}-src {sources}')
    return '; '.join(directives)


def polyfill_source():
    """ The bundled text fragments polyfill. """

    return importlib.resources.files('unbook.writers').joinpath(
        POLYFILL_RESOURCE).read_text(encoding='utf-8')


def polyfill_script(mode):
    """ Return (script text, attributes) for a polyfill mode, or None. """

    if mode == 'inline':
        return polyfill_source(), {'type': 'module'}
    if mode == 'unpkg':
        script = ("if (!('fragmentDirective' in Location.prototype) && "
                  "!('fragmentDirective' in document)) { "
                  f"import('{POLYFILL_URL}'); }}")
        return script, {'type': 'module'}
    return None


def head_fragments(markup):
    """ Parse user markup for the head into elements. """

    if not markup or not markup.strip():
        return []
    try:
        fragments = lxml.html.fragments_fromstring(markup)
    except etree.ParserError as what:
        warning('Cannot parse markup to append to head: %s' % what)
        return []
    elements = []
    for fragment in fragments:
        if isinstance(fragment, str):
            if fragment.strip():
                warning('Ignoring text in markup to append to head: %s' % fragment.strip())
            continue
        elements.append(fragment)
    return elements


def escape_comment(text):
    """ Make text safe to put into a comment. """

    text = RE_CONTROL_CHARS.sub('', text)
    while '--' in text:
        text = text.replace('--', '- -')
    text = text.replace('<!-', '<! -')
    if text.endswith('-'):
        text += ' '
    return text


def _section(title, lines):
    lines = [line for line in lines if line]
    if not lines:
        return ''
    return f'{title}:\n' + ''.join(f'  {line}\n' for line in lines) + '\n'


def report_comment(job=None, metadata=None, unread=(), missing=(),
                   inventory=None, decision=None, report=None):
    """ Render the text of the comment at the top of the document. """

    text = f'\n{MARKER} {VERSION}\n\n'

    if job is not None:
        if job.original_name:
            text += f'Original file: {job.original_name}\n'
        if job.original_size is not None:
            text += f'Original size: {job.original_size} bytes\n'
        text += '\n'

    if metadata:
        text += _section('Metadata', metadata.strip().splitlines())

    if inventory is not None:
        for category in CATEGORIES:
            stacks = inventory.most_common(category)
            text += _section(
                f'Font stacks ({category.value})',
                [f'{count:5d}  {stack}' for stack, count in stacks])
    if decision is not None:
        text += f'Font decision: {decision}\n\n'

    unused = _section('Files in the book that were not used', sorted(unread))
    if unused:
        # calibre likes to put a second copy of the cover into htmlz
        unused = unused[:-1] + '  (one unused image is usually a duplicate of the cover)\n\n'
    text += unused
    text += _section('Files referenced but missing from the book', sorted(missing))

    if report is not None:
        text += _section('Warnings', [f'{w.kind}: {w.message}' for w in report.warnings])

    if job is not None:
        text += _section('Converter messages', job.converter_stderr.splitlines())
        text += _section('Converter log', job.converter_log.splitlines())

    return escape_comment(text)
