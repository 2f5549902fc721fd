#!/usr/bin/env python
#  -*- mode: python; indent-tabs-mode: nil; -*- coding: UTF8 -*-

"""

AssetInliner.py

Copyright 2024 by the unbook contributors

Distributable under the GNU General Public License Version 3 or newer.

Replace references to package files with data: urls.

"""

import base64

from libgutenberg.GutenbergGlobals import xpath
from libgutenberg.Logger import debug

from unbook.parsers import resolve_path
from unbook.parsers import ImageParser
from unbook.parsers.CSSParser import OpaqueRule, replace_urls

# (xpath, attribute) of everything that points at a binary asset
ASSET_ATTRIBUTES = (
    ('//img[@src]', 'src'),
    ('//image[@href]', 'href'),
    ('//input[@type="image"][@src]', 'src'),
    ('//video[@poster]', 'poster'),
    ('//video[@src]', 'src'),
    ('//audio[@src]', 'src'),
    ('//source[@src]', 'src'),
    ('//track[@src]', 'src'),
    ('//object[@data]', 'data'),
    ('//embed[@src]', 'src'),
    ('//script[@src]', 'src'),
)


class AssetRecord(object):
    """ One binary file of the package. """

    def __init__(self, path, data, mediatype):
        self.path = path
        self.data = data
        self.mediatype = mediatype

    def data_uri(self):
        return 'data:%s;base64,%s' % (
            self.mediatype, base64.b64encode(self.data).decode('ascii'))


class AssetInliner(object):
    """ Embed the assets a document or stylesheet refers to.

    Every asset is read and encoded at most once; every reference to
    the same path gets the same data url. A reference to a file the
    package doesn't have stays as it is.

    """

    def __init__(self, package, report, max_image_size=0):
        self.package = package
        self.report = report
        self.max_image_size = max_image_size
        self.cache = {}
        self.missing = set()
        self.encoded_size = 0


    def record(self, path):
        """ Return the AssetRecord for path, or None if it is missing. """

        if path in self.cache:
            return self.cache[path]

        data = self.package.read_asset(path)
        if data is None:
            record = None
            if path not in self.missing:
                self.missing.add(path)
                self.report.warn('missing-asset', 'Missing file referenced by book: %s', path)
        else:
            parser = ImageParser.Parser(path, data)
            if self.max_image_size:
                parser = parser.resize_image(self.max_image_size)
            record = AssetRecord(path, parser.bytes_content(), parser.mediatype())
            debug('Inlining %s as %s (%d bytes)' % (path, record.mediatype, len(record.data)))

        self.cache[path] = record
        return record


    def data_uri(self, path):
        record = self.record(path)
        if record is None:
            return None
        uri = record.data_uri()
        self.encoded_size += len(uri)
        return uri


    def inline_url(self, base, url):
        """ Return the data url for url as seen from base, or None. """

        if url.startswith('#') or url.lower().startswith('data:'):
            return None
        path, dummy_frag = resolve_path(base, url)
        if path is None:
            return None
        return self.data_uri(path)


    def inline_tree(self, tree, base):
        """ Inline all assets referenced by a document tree.

        base is the package path of the document the tree was parsed
        from.

        """

        for path, attr in ASSET_ATTRIBUTES:
            for elem in xpath(tree, path):
                uri = self.inline_url(base, elem.get(attr))
                if uri is not None:
                    elem.set(attr, uri)
                    if elem.tag == 'img' and elem.get('srcset'):
                        # srcset takes precedence over src
                        del elem.attrib['srcset']

        for elem in xpath(tree, '//*[@style]'):
            style = elem.get('style')
            if 'url(' in style.lower():
                elem.set('style', self.inline_css_value(style, base))


    def inline_css_value(self, value, base):
        return replace_urls(value, lambda url: self.inline_url(base, url))


    def inline_stylesheet(self, sheet):
        """ Inline all url()s of a Stylesheet, against its own path. """

        for decl in sheet.iter_declarations(font_face=True):
            if 'url(' in decl.value.lower():
                decl.value = self.inline_css_value(decl.value, sheet.path)

        # rules we could not parse keep their urls in the raw text
        for rule in sheet.iter_rules():
            if isinstance(rule, OpaqueRule):
                rule.text = self.inline_css_value(rule.text, sheet.path)


    def check_total_size(self, size, limit):
        """ Warn if the document got impractically big. """

        if limit and size > limit:
            self.report.warn(
                'size', 'Output is %.1f MiB, more than the advised %.1f MiB (%.1f MiB embedded files)',
                size / 1048576.0, limit / 1048576.0, self.encoded_size / 1048576.0)
            return False
        return True

