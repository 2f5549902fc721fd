#!/usr/bin/env python
#  -*- mode: python; indent-tabs-mode: nil; -*- coding: UTF8 -*-

"""

Assembler.py

Copyright 2024 by the unbook contributors

Distributable under the GNU General Public License Version 3 or newer.

Make one self-contained html document out of a Package.

"""

import re

from libgutenberg.GutenbergGlobals import xpath
from libgutenberg.Logger import debug, info

from unbook.AssetInliner import AssetInliner
from unbook.CommonCode import ConversionReport, UnbookBadFileException, UnbookFatalError
from unbook.DocumentMerger import DocumentMerger, SKIP_COVER_ID
from unbook.FontPolicy import decide
from unbook.FontStacks import build_inventory
from unbook.StyleFixer import StyleFixer
from unbook.Version import GENERATOR
from unbook import writers
from unbook.writers import HTMLishWriter, HtmlTemplates
from unbook.parsers import CSSParser, HTMLParser, em, resolve_path
from unbook.parsers.CSSParser import (
    GroupRule, Stylesheet, parse_style_attribute, parse_stylesheet, serialize_style_attribute)

# style attributes we may have to rewrite
RE_FIXABLE_STYLE = re.compile(r'font|line-height', re.I)

# max depth of @import chains
MAX_IMPORT_DEPTH = 8


def escape_raw_text(text):
    """ Keep text from closing the style or script element it is in. """

    return text.replace('</', '<\\/')


class ConversionResult(object):
    """ What a conversion produced. """

    def __init__(self, html, report, inventory, decision, document=None):
        self.html = html
        self.report = report
        self.inventory = inventory
        self.decision = decision
        self.document = document

    @property
    def ok(self):
        return self.report.ok


class Assembler(object):
    """ Run the whole pipeline on one Package.

    The order is fixed: parse, count the font stacks, decide, fix the
    css, inline the assets, merge the documents, add our own head
    elements, serialize. Our own css goes in last, so the font
    decision never touches it.

    """

    def __init__(self, options, report=None, job=None):
        self.options = options.validate()
        self.report = report if report is not None else ConversionReport()
        self.job = job
        self.loaded_sheets = {}
        self.package = None
        self.title = None


    def assemble(self, package):
        """ Convert package. Returns a ConversionResult. """

        info('Assembling %s' % package)

        fragments = self.parse_fragments(package)
        sheets = self.load_stylesheets(package, fragments)
        style_attributes = self.parse_style_attributes(fragments)

        inventory = build_inventory(sheets, [decls for dummy_elem, decls in style_attributes])
        decision = decide(inventory,
                          self.options.replace_serif_and_sans_serif,
                          self.options.replace_monospace,
                          self.options.base_font_family,
                          self.options.monospace_font_family)

        fixer = StyleFixer(self.options, decision)
        for sheet in sheets:
            fixer.fix_stylesheet(sheet)
        for elem, declarations in style_attributes:
            if fixer.fix_style_attribute(declarations):
                elem.set('style', serialize_style_attribute(declarations))

        inliner = AssetInliner(package, self.report, int(self.options.max_image_size))
        for sheet in sheets:
            inliner.inline_stylesheet(sheet)
        for fragment in fragments:
            inliner.inline_tree(fragment.tree, fragment.path)

        document = DocumentMerger(self.report).merge(fragments)
        self.add_cover(document, package, inliner)
        self.add_head(document, package, sheets, inventory, decision)

        html = writers.serialize(document.tree)
        inliner.check_total_size(len(html), int(self.options.max_output_size))

        info('Assembled %d bytes from %d documents' % (len(html), len(fragments)))
        return ConversionResult(html, self.report, inventory, decision, document)


    def parse_fragments(self, package):
        """ Parse all documents. Drops the ones that fail. """

        fragments = []
        for index, path in enumerate(package.documents):
            data = package.read_file(path)
            if data is None:
                self.report.warn('fragment', 'Document %s not found in book', path)
                continue
            try:
                fragment = HTMLParser.Parser(path, data).parse(index)
            except UnbookBadFileException as what:
                self.report.warn('fragment', 'Skipping document %s: %s', path, what)
                continue
            fragments.append(fragment)
            if self.title is None:
                self.title = fragment.title

        if not fragments:
            raise UnbookFatalError('No usable documents in %s' % package.name)
        return fragments


    def load_stylesheet(self, path, depth=0):
        """ Load a package stylesheet and what it imports.

        Returns a list of Stylesheets, imported ones first. Every path
        gets loaded only once.

        """

        if path in self.loaded_sheets:
            return []
        self.loaded_sheets[path] = None

        data = self.package.read_file(path)
        if data is None:
            self.report.warn('missing-asset', 'Missing stylesheet: %s', path)
            return []
        sheet = CSSParser.Parser(path, data).parse()
        self.loaded_sheets[path] = sheet
        return self.resolve_imports(sheet, depth) + [sheet]


    def resolve_imports(self, sheet, depth):
        """ Load the sheets imported by sheet, then drop the @imports. """

        sheets = []
        for rule in sheet.imports():
            path, dummy_frag = resolve_path(sheet.path, rule.href)
            if path is None:
                self.report.warn('css', 'Dropping remote @import %s in %s',
                                 rule.href, sheet.path or 'style element')
                continue
            if depth >= MAX_IMPORT_DEPTH:
                self.report.warn('css', 'Too many nested @imports at %s', path)
                continue
            imported = self.load_stylesheet(path, depth + 1)
            if rule.media and imported:
                # keep the media query of the @import
                imported = [Stylesheet(s.path, [GroupRule('@media %s' % rule.media, s.rules)])
                            for s in imported]
            sheets.extend(imported)
        sheet.remove_imports()
        return sheets


    def load_stylesheets(self, package, fragments):
        """ All stylesheets in cascade order. """

        self.package = package
        sheets = []
        for path in package.stylesheets:
            sheets.extend(self.load_stylesheet(path))

        for fragment in fragments:
            for kind, value in fragment.stylesheets:
                if kind == 'link':
                    sheets.extend(self.load_stylesheet(value))
                else:
                    # urls in style elements are relative to the document
                    sheet = parse_stylesheet(value, fragment.path)
                    sheets.extend(self.resolve_imports(sheet, 0))
                    sheets.append(sheet)

        debug('Loaded %d stylesheets' % len(sheets))
        return sheets


    @staticmethod
    def parse_style_attributes(fragments):
        """ Return (element, Declarations) of style attributes worth fixing. """

        result = []
        for fragment in fragments:
            for elem in xpath(fragment.tree, '//*[@style]'):
                style = elem.get('style')
                if RE_FIXABLE_STYLE.search(style):
                    result.append((elem, parse_style_attribute(style)))
        return result


    @staticmethod
    def book_css(sheets):
        """ The book's css, one sheet after the other. """

        parts = []
        for sheet in sheets:
            parts.append('/* %s */\n' % (sheet.path or 'style element').replace('*/', ''))
            parts.append(sheet.serialize())
        return '\n'.join(parts)


    @staticmethod
    def add_cover(document, package, inliner):
        """ Put the cover image at the top, unless the book shows it already. """

        body = document.body
        skip = em.a(id=SKIP_COVER_ID)
        skip.tail = '\n'
        body.insert(0, skip)

        cover_path = package.cover_path
        if not cover_path or cover_path in package.read_paths:
            return
        uri = inliner.data_uri(cover_path)
        if uri is None:
            return
        img = em.img(src=uri, alt='Book cover')
        img.set('class', 'unbook-cover')
        img.tail = '\n'
        body.insert(0, img)
        debug('Added cover image %s' % cover_path)


    def add_head(self, document, package, sheets, inventory, decision):
        """ Put our metas, styles and scripts around the book's head. """

        tree = document.tree
        options = self.options
        head = document.head

        HTMLishWriter.add_charset(tree)
        for base in xpath(head, 'base'):
            # links point into the merged document now
            head.remove(base)
        book_head = [child for child in head if child.get('charset') is None]
        for child in book_head:
            head.remove(child)

        HTMLishWriter.add_http_equiv(tree, 'Content-Security-Policy',
                                     HtmlTemplates.csp_content(options))
        HTMLishWriter.add_meta(tree, 'viewport', 'width=device-width, viewport-fit=cover')
        HTMLishWriter.add_meta(tree, 'referrer', 'no-referrer')
        HTMLishWriter.add_meta(tree, 'generator', GENERATOR)
        head.extend(book_head)

        HTMLishWriter.set_title(tree, package.title or self.title)

        HTMLishWriter.add_internal_css(tree, HtmlTemplates.base_css(options))
        HTMLishWriter.add_internal_css(tree, escape_raw_text(self.book_css(sheets)))
        HTMLishWriter.add_internal_css(tree, HtmlTemplates.constraints_css(options))

        script = HtmlTemplates.polyfill_script(options.text_fragments_polyfill)
        if script is not None:
            text, attribs = script
            HTMLishWriter.add_script(tree, '\n' + escape_raw_text(text) + '\n', **attribs)

        for elem in HtmlTemplates.head_fragments(options.append_head):
            elem.tail = '\n'
            head.append(elem)

        HTMLishWriter.add_comment(tree, HtmlTemplates.report_comment(
            job=self.job,
            metadata=package.metadata,
            unread=package.unread_paths(),
            missing=package.missing_paths(),
            inventory=inventory,
            decision=decision,
            report=self.report))
