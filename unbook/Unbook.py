#!/usr/bin/env python
#  -*- mode: python; indent-tabs-mode: nil; -*- coding: UTF8 -*-

"""

Unbook.py

Copyright 2024 by the unbook contributors

Distributable under the GNU General Public License Version 3 or newer.

Stand-alone application to convert an ebook into one self-contained
html file, comfortable to read in any browser.

"""

import argparse
import configparser
import logging
import os.path
import sys

from libgutenberg import Logger
from libgutenberg.Logger import critical, debug, info, warning

from unbook import CommonCode
from unbook.Assembler import Assembler
from unbook.CommonCode import Job, Options, UnbookError, UnbookFatalError
from unbook.Converter import remove_htmlz, run_ebook_convert, sniff_input
from unbook.Package import HTMLZPackage, open_package
from unbook.Version import VERSION
from unbook.writers import HTMLWriter

# store default command line args in [DEFAULT_ARGS] section of CONFIG_FILE
CONFIG_FILE = os.path.expanduser('~/.unbook')

options = Options()


def add_local_options(ap):
    """ Add local options to commandline. """

    ap.add_argument(
        '--version',
        action='version',
        version="%%(prog)s %s" % VERSION
    )

    ap.add_argument(
        "ebook_path",
        metavar="EBOOK_PATH",
        help="path of the ebook to convert")

    ap.add_argument(
        "--output-path", "-o",
        metavar="OUTPUT_PATH",
        dest="output_path",
        default=None,
        help="output path for the html file (default: EBOOK_PATH with .html appended)")

    ap.add_argument(
        "--remove-ebook-ext", "-e",
        dest="remove_ebook_ext",
        action="store_true",
        help="replace the ebook extension with .html instead of appending .html")

    ap.add_argument(
        "--force", "-f",
        dest="force",
        action="store_true",
        help="replace the output file if it already exists")

    ap.add_argument(
        "--base-font-size",
        type=CommonCode.css_length,
        default=CommonCode.DEFAULTS['base_font_size'],
        help="the base font-size, with a css unit (default: %(default)s)")

    ap.add_argument(
        "--base-font-family",
        type=CommonCode.css_font_family,
        default=CommonCode.DEFAULTS['base_font_family'],
        help="the font-family to use for the book text (default: %(default)s)")

    ap.add_argument(
        "--monospace-font-family",
        type=CommonCode.css_font_family,
        default=CommonCode.DEFAULTS['monospace_font_family'],
        help="the monospace font-family to use (default: %(default)s)")

    ap.add_argument(
        "--replace-serif-and-sans-serif",
        metavar="MODE",
        type=CommonCode.policy,
        default=CommonCode.DEFAULTS['replace_serif_and_sans_serif'],
        help="font stack replacement mode for serif and sans-serif font stacks, "
        "treated as one set: %s. 'if-one' replaces when the book has just one "
        "distinct font stack (default: %%(default)s)" % ', '.join(CommonCode.POLICIES))

    ap.add_argument(
        "--replace-monospace",
        metavar="MODE",
        type=CommonCode.policy,
        default=CommonCode.DEFAULTS['replace_monospace'],
        help="font stack replacement mode for monospace font stacks (default: %(default)s)")

    ap.add_argument(
        "--min-font-size",
        type=CommonCode.css_length,
        default=CommonCode.DEFAULTS['min_font_size'],
        help="the minimum font-size, with a css unit. Works around bad 'em' sizing "
        "making fonts far too small (default: %(default)s)")

    ap.add_argument(
        "--max-width",
        type=CommonCode.css_length,
        default=CommonCode.DEFAULTS['max_width'],
        help="the max-width of the book text, with a css unit (default: %(default)s)")

    ap.add_argument(
        "--min-line-height",
        type=CommonCode.css_line_height,
        default=CommonCode.DEFAULTS['min_line_height'],
        help="the minimum line-height, with an optional css unit (default: %(default)s)")

    ap.add_argument(
        "--inside-margin-when-wide",
        type=CommonCode.css_length,
        default=CommonCode.DEFAULTS['inside_margin_when_wide'],
        help="the inside margin of the book text when the viewport is wide enough "
        "to show the outside margin (default: %(default)s)")

    ap.add_argument(
        "--inside-margin-when-narrow",
        type=CommonCode.css_length,
        default=CommonCode.DEFAULTS['inside_margin_when_narrow'],
        help="the inside margin of the book text when the viewport is not wide enough "
        "to show the outside margin (default: %(default)s)")

    ap.add_argument(
        "--outside-bgcolor",
        type=CommonCode.css_color,
        default=CommonCode.DEFAULTS['outside_bgcolor'],
        help="background color of the outside margin, 'unset' for none (default: %(default)s)")

    ap.add_argument(
        "--inside-bgcolor",
        type=CommonCode.css_color,
        default=CommonCode.DEFAULTS['inside_bgcolor'],
        help="background color of the book text, 'unset' for none (default: %(default)s)")

    ap.add_argument(
        "--inside-bgcolor-similarity-threshold",
        metavar="THRESHOLD",
        type=CommonCode.threshold,
        default=CommonCode.DEFAULTS['inside_bgcolor_similarity_threshold'],
        help="remove near-white page backgrounds that would hide the inside "
        "background color when R, G and B are all within this fraction of it. "
        "0 never removes, 1 always removes (default: %(default)s)")

    ap.add_argument(
        "--append-head",
        metavar="HTML",
        default=CommonCode.DEFAULTS['append_head'],
        help="additional html to append to <head>")

    ap.add_argument(
        "--ebook-convert",
        metavar="PATH",
        default='ebook-convert',
        help="path of the calibre ebook-convert executable (default: %(default)s)")

    ap.add_argument(
        "--keep-temporary-htmlz",
        action="store_true",
        help="keep the temporary htmlz file for debugging")

    ap.add_argument(
        "--direct",
        action="store_true",
        help="read EPUB, HTMLZ or HTML input directly, without calibre")

    ap.add_argument(
        "--text-fragments-polyfill",
        metavar="MODE",
        type=CommonCode.polyfill_mode,
        default=CommonCode.DEFAULTS['text_fragments_polyfill'],
        help="text fragments polyfill to add for browsers without native support: "
        "%s (default: %%(default)s)" % ', '.join(CommonCode.POLYFILL_MODES))

    for directive in CommonCode.CSP_DIRECTIVES:
        ap.add_argument(
            "--csp-%s-src" % directive,
            metavar="SOURCES",
            type=CommonCode.csp_source,
            default=CommonCode.DEFAULTS['csp_%s_src' % directive],
            help="space-separated entries to add to Content-Security-Policy %s-src" % directive)

    ap.add_argument(
        "--max-image-size",
        metavar="BYTES",
        type=CommonCode.byte_count,
        default=CommonCode.DEFAULTS['max_image_size'],
        help="shrink raster images bigger than this (default: %(default)s, never)")

    ap.add_argument(
        "--max-output-size",
        metavar="BYTES",
        type=CommonCode.byte_count,
        default=CommonCode.DEFAULTS['max_output_size'],
        help="warn if the html file gets bigger than this (default: %(default)s)")


def config(argv=None):
    """ Process config file and commandline params. """

    # find the config file first, it holds the defaults for everything else
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", dest="config_file", default=CONFIG_FILE)
    known, dummy_rest = pre.parse_known_args(argv)

    ap = argparse.ArgumentParser(prog='unbook')
    CommonCode.add_common_options(ap, CONFIG_FILE)
    add_local_options(ap)
    CommonCode.set_arg_defaults(ap, known.config_file)

    global options
    options = Options()
    options.update(vars(ap.parse_args(argv)))
    return options


def output_path_for(ebook_path, remove_ebook_ext=False):
    """ Where the html goes if the user doesn't say. """

    if remove_ebook_ext:
        return os.path.splitext(ebook_path)[0] + '.html'
    return ebook_path + '.html'


def refuse_existing(path):
    raise UnbookFatalError(
        'Output file %s already exists; use unbook -f if you want to overwrite' % path)


def do_job(job):
    """ Convert one ebook. """

    sniff_input(job.ebook_path)
    job.original_name = os.path.basename(job.ebook_path)
    job.original_size = os.path.getsize(job.ebook_path)

    try:
        if options.direct:
            package = open_package(job.ebook_path)
        else:
            run_ebook_convert(job, options.ebook_convert)
            package = HTMLZPackage.from_file(job.htmlz_path)

        result = Assembler(options, job=job).assemble(package)
    finally:
        remove_htmlz(job, options.keep_temporary_htmlz)

    # again, it may have appeared while we worked
    if not options.force and os.path.exists(job.output_path):
        refuse_existing(job.output_path)
    try:
        HTMLWriter.write(job.output_path, result.html, force=options.force)
    except FileExistsError:
        refuse_existing(job.output_path)
    except OSError as what:
        raise UnbookFatalError('Cannot write %s: %s' % (job.output_path, what))

    for kind, count in sorted(result.report.kinds().items()):
        warning('%d warnings of kind %s' % (count, kind))
    info('Wrote %s' % job.output_path)
    return result


def main(argv=None):
    """ Main program. """

    try:
        config(argv)
    except configparser.Error as what:
        Logger.setup(Logger.LOGFORMAT, loglevel=logging.WARNING)
        critical("Error in configuration file: %s", str(what))
        return 1

    Logger.setup(Logger.LOGFORMAT, loglevel=logging.WARNING)
    Logger.set_log_level(options.verbose)

    try:
        options.validate()
    except UnbookError as what:
        critical(str(what))
        return 1
    debug(str(options))

    job = Job(options.ebook_path)
    job.output_path = options.output_path or output_path_for(
        options.ebook_path, options.remove_ebook_ext)

    try:
        # bail out before running the converter
        if not options.force and os.path.exists(job.output_path):
            refuse_existing(job.output_path)
        do_job(job)
    except UnbookError as what:
        critical('Failed to convert %s: %s' % (job.ebook_path, what))
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
