#!/usr/bin/env python
#  -*- mode: python; indent-tabs-mode: nil; -*- coding: UTF8 -*-

"""
CommonCode.py

Copyright 2024 by the unbook contributors

Distributable under the GNU General Public License Version 3 or newer.

Exceptions, options and per-job state shared by the converter, the
core and the command line tool.

"""

import collections
import configparser
import re

from libgutenberg.Logger import debug, warning


class UnbookError(Exception):
    pass

class UnbookBadFileException(UnbookError):
    """ An input file, or one document inside it, is unusable. """
    pass

class UnbookFatalError(UnbookError):
    """ The conversion cannot produce any output. """
    pass

class UnbookConfigError(UnbookError):
    """ A configuration value failed validation. """
    pass


POLICIES = ('never', 'if-one', 'always')
POLYFILL_MODES = ('none', 'inline', 'unpkg')

CSP_DIRECTIVES = ('default', 'font', 'img', 'style', 'media', 'script', 'object')

DEFAULTS = {
    'base_font_size': '15px',
    'base_font_family': 'sans-serif',
    'monospace_font_family': 'monospace',
    'replace_serif_and_sans_serif': 'if-one',
    'replace_monospace': 'if-one',
    'min_font_size': '13px',
    'max_width': '5in',
    'min_line_height': '1.53333333',
    'inside_margin_when_wide': '32px',
    'inside_margin_when_narrow': '16px',
    'outside_bgcolor': '#888',
    'inside_bgcolor': '#e9e9e9',
    'inside_bgcolor_similarity_threshold': 0.2,
    'append_head': '',
    'text_fragments_polyfill': 'inline',
    'max_image_size': 0,
    'max_output_size': 50 * 1024 * 1024,
}
for _directive in CSP_DIRECTIVES:
    DEFAULTS['csp_%s_src' % _directive] = ''

RE_CSS_LENGTH = re.compile(
    r'^(?:\d+(?:\.\d+)?|\.\d+)(?:px|pt|pc|in|cm|mm|q|em|rem|ex|ch|vw|vh|vmin|vmax|%)$', re.I)
RE_CSS_NUMBER = re.compile(r'^(?:\d+(?:\.\d+)?|\.\d+)$')
RE_ZERO = re.compile(r'^0*\.?0*[a-z%]*$', re.I)

# characters that would let a value break out of a declaration or a tag
RE_UNSAFE_VALUE = re.compile(r'[;{}<>\\]')


def css_length(value):
    """ Validate a non-negative css length, eg. '15px' or '0.5in'.

    Usable as an argparse type.

    """

    value = str(value).strip()
    if value == '0' or RE_CSS_LENGTH.match(value):
        return value
    raise ValueError("invalid css length: '%s'" % value)


def css_line_height(value):
    """ A line height may also be a plain number. """

    value = str(value).strip()
    if RE_CSS_NUMBER.match(value):
        return value
    return css_length(value)


def css_font_family(value):
    """ Validate a font-family list typed by the user. """

    value = str(value).strip()
    if not value or RE_UNSAFE_VALUE.search(value) or value.count('"') % 2 or value.count("'") % 2:
        raise ValueError("invalid font-family: '%s'" % value)
    return value


def css_color(value):
    """ Validate a css color.

    Colors are inserted verbatim into the generated stylesheet. Any
    css color works, also 'unset' for no color.

    """

    value = str(value).strip()
    if not value or RE_UNSAFE_VALUE.search(value):
        raise ValueError("invalid css color: '%s'" % value)
    return value


def policy(value):
    """ Normalize a replacement policy name. """

    value = str(value).strip().lower().replace('_', '-')
    if value not in POLICIES:
        raise ValueError("invalid replacement policy: '%s' (choose from %s)"
                         % (value, ', '.join(POLICIES)))
    return value


def polyfill_mode(value):
    value = str(value).strip().lower()
    if value not in POLYFILL_MODES:
        raise ValueError("invalid text fragments polyfill mode: '%s' (choose from %s)"
                         % (value, ', '.join(POLYFILL_MODES)))
    return value


def threshold(value):
    """ A fraction between 0 and 1. """

    value = float(value)
    if not 0.0 <= value <= 1.0:
        raise ValueError("threshold must be between 0 and 1, not %s" % value)
    return value


def byte_count(value):
    value = int(value)
    if value < 0:
        raise ValueError("size must not be negative, not %d" % value)
    return value


def csp_source(value):
    """ Extra sources for one Content-Security-Policy directive. """

    value = str(value).strip()
    if RE_UNSAFE_VALUE.search(value) or '"' in value:
        raise ValueError("invalid Content-Security-Policy source list: '%s'" % value)
    return value


VALIDATORS = {
    'base_font_size': css_length,
    'min_font_size': css_length,
    'max_width': css_length,
    'min_line_height': css_line_height,
    'inside_margin_when_wide': css_length,
    'inside_margin_when_narrow': css_length,
    'base_font_family': css_font_family,
    'monospace_font_family': css_font_family,
    'replace_serif_and_sans_serif': policy,
    'replace_monospace': policy,
    'outside_bgcolor': css_color,
    'inside_bgcolor': css_color,
    'inside_bgcolor_similarity_threshold': threshold,
    'text_fragments_polyfill': polyfill_mode,
    'max_image_size': byte_count,
    'max_output_size': byte_count,
}
for _directive in CSP_DIRECTIVES:
    VALIDATORS['csp_%s_src' % _directive] = csp_source

# lengths that must not be zero
NONZERO = ('base_font_size', 'max_width')


class Options(object):
    """ The values that steer one conversion.

    Starts out with DEFAULTS, gets updated from the config file and
    the command line, and must pass validate () before the core sees
    it.

    """

    def __init__(self, **kwargs):
        self.__dict__.update(DEFAULTS)
        self.update(kwargs)


    def update(self, values):
        for k, v in values.items():
            setattr(self, k, v)


    def get(self, name, default=None):
        return getattr(self, name, default)


    def validate(self):
        """ Normalize all values or raise UnbookConfigError. """

        errors = []
        for name, validator in VALIDATORS.items():
            value = getattr(self, name)
            if value is None:
                value = DEFAULTS[name]
            try:
                value = validator(value)
            except (TypeError, ValueError) as what:
                errors.append('%s: %s' % (name.replace('_', '-'), what))
                continue
            if name in NONZERO and RE_ZERO.match(value):
                errors.append('%s: must not be zero' % name.replace('_', '-'))
                continue
            setattr(self, name, value)

        if errors:
            raise UnbookConfigError('Invalid configuration: ' + '; '.join(errors))

        debug('Options validated.')
        return self


    def csp_sources(self):
        """ Return the configured extra sources per CSP directive. """

        return collections.OrderedDict(
            (directive, getattr(self, 'csp_%s_src' % directive))
            for directive in CSP_DIRECTIVES)


    def __str__(self):
        l = []
        for k, v in sorted(self.__dict__.items()):
            l.append("%s: %s" % (k, v))
        return '\n'.join(l)


ConversionWarning = collections.namedtuple('ConversionWarning', 'kind message')

class ConversionReport(object):
    """ Collect recoverable problems met during one conversion.

    A conversion that finishes with warnings still produced a usable
    document. Fatal problems are raised as exceptions instead.

    """

    def __init__(self):
        self.warnings = []


    def warn(self, kind, message, *args):
        """ Log and remember a recoverable problem. """

        if args:
            message = message % args
        warning(message)
        self.warnings.append(ConversionWarning(kind, message))


    def kinds(self):
        return collections.Counter(w.kind for w in self.warnings)


    def of_kind(self, kind):
        return [w.message for w in self.warnings if w.kind == kind]


    @property
    def ok(self):
        return not self.warnings


class Job(object):
    """Hold 'globals' for a job.

    A job is one run of the tool on one input ebook. The fields end up
    in the comment at the top of the generated document.

    """

    def __init__(self, ebook_path=None):
        self.ebook_path = ebook_path
        self.output_path = None
        self.htmlz_path = None
        self.original_name = None
        self.original_size = None
        self.converter_stderr = ''
        self.converter_log = ''


    def __str__(self):
        l = []
        for k, v in self.__dict__.items():
            l.append("%s: %s" % (k, v))
        return '\n'.join(l)


def add_common_options(ap, user_config_file):
    """ Add options common to all programs. """

    ap.add_argument(
        "--verbose", "-v",
        action="count",
        default=0,
        help="be verbose (-v -v be more verbose)")

    ap.add_argument(
        "--config",
        metavar="CONFIG_FILE",
        dest="config_file",
        action="store",
        default=user_config_file,
        help="read config file (default: %(default)s)")


def set_arg_defaults(ap, config_file):
    # get default command-line args
    cp = configparser.ConfigParser(interpolation=None)
    cp.read(config_file)
    if cp.has_section('DEFAULT_ARGS'):
        ap.set_defaults(**dict(cp.items('DEFAULT_ARGS')))
