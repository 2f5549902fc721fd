#!/usr/bin/env python
# -*- coding: utf-8 -*-
'''
run this with
python -m unittest -v tests.test_inliner
'''

import base64
import io
import os
import unittest

import lxml.html
from PIL import Image

from unbook.AssetInliner import AssetInliner
from unbook.CommonCode import ConversionReport
from unbook.Package import Package
from unbook.parsers import ImageParser
from unbook.parsers.CSSParser import OpaqueRule, parse_stylesheet


def png_bytes(size=(4, 4), noise=False):
    if noise:
        image = Image.frombytes('RGB', size, os.urandom(size[0] * size[1] * 3))
    else:
        image = Image.new('RGB', size, (255, 0, 0))
    buf = io.BytesIO()
    image.save(buf, 'png')
    return buf.getvalue()


class TestMediatypes(unittest.TestCase):

    def test_sniff(self):
        self.assertEqual(ImageParser.sniff_mediatype(png_bytes()), 'image/png')
        self.assertEqual(ImageParser.sniff_mediatype(png_bytes(), 'cover.jpg'), 'image/png')
        self.assertEqual(ImageParser.sniff_mediatype(b'wOFF\x00\x01rest'), 'font/woff')
        self.assertEqual(ImageParser.sniff_mediatype(
            b'<?xml version="1.0"?>\n<svg xmlns="http://www.w3.org/2000/svg"></svg>'),
                         'image/svg+xml')
        self.assertEqual(ImageParser.sniff_mediatype(b'p { color: red }', 'style.css'),
                         'text/css')
        self.assertEqual(ImageParser.sniff_mediatype(b'\x00\x00garbage'),
                         ImageParser.DEFAULT_MEDIATYPE)

    def test_dimen(self):
        parser = ImageParser.Parser('a.png', png_bytes((7, 3)))
        self.assertEqual(tuple(parser.get_image_dimen()), (7, 3))
        self.assertTrue(parser.is_raster())

    def test_resize(self):
        data = png_bytes((200, 200), noise=True)
        parser = ImageParser.Parser('noise.png', data)
        smaller = parser.resize_image(20000)
        self.assertTrue(smaller is not parser)
        self.assertTrue(len(smaller.bytes_content()) < len(data))
        self.assertEqual(smaller.mediatype(), 'image/png')
        self.assertTrue(parser.resize_image(0) is parser)
        self.assertTrue(parser.resize_image(len(data)) is parser)


class TestAssetInliner(unittest.TestCase):

    def setUp(self):
        self.png = png_bytes()
        self.package = Package('test')
        self.package.add_file('OEBPS/images/a.png', self.png)
        self.report = ConversionReport()
        self.inliner = AssetInliner(self.package, self.report)

    def test_tree(self):
        tree = lxml.html.document_fromstring(
            '<html><body>'
            '<img src="../images/a.png" srcset="../images/a.png 2x">'
            '<img src="../images/a.png">'
            '<img src="missing.png"><img src="missing.png">'
            '<img src="http://example.com/b.png">'
            '<p style="background: url(\'../images/a.png\')">x</p>'
            '</body></html>')
        self.inliner.inline_tree(tree, 'OEBPS/text/ch1.html')

        imgs = tree.findall('.//img')
        expected = 'data:image/png;base64,' + base64.b64encode(self.png).decode('ascii')
        self.assertEqual(imgs[0].get('src'), expected)
        self.assertTrue(imgs[0].get('srcset') is None)
        self.assertEqual(imgs[1].get('src'), expected)
        self.assertEqual(imgs[2].get('src'), 'missing.png')
        self.assertEqual(imgs[4].get('src'), 'http://example.com/b.png')
        self.assertTrue(expected in tree.find('.//p').get('style'))

        self.assertTrue('OEBPS/images/a.png' in self.package.read_paths)
        self.assertEqual(self.package.missing_paths(), {'OEBPS/text/missing.png'})
        self.assertEqual(len(self.report.of_kind('missing-asset')), 1)

    def test_stylesheet(self):
        sheet = parse_stylesheet(
            '@font-face { font-family: Foo; src: url(../fonts/foo.woff) }\n'
            'body { background: url(../images/a.png) no-repeat }\n'
            '.x { background: url(data:image/gif;base64,R0lGOD) }\n',
            'OEBPS/css/style.css')
        self.package.add_file('OEBPS/fonts/foo.woff', b'wOFF\x00\x01font')
        self.inliner.inline_stylesheet(sheet)
        css = sheet.serialize()
        self.assertTrue('url(data:font/woff;base64,' in css)
        self.assertTrue('url(data:image/png;base64,' in css)
        self.assertTrue('R0lGOD' in css)
        self.assertTrue(self.report.ok)

    def test_stylesheet_unparsed_rules(self):
        sheet = parse_stylesheet(
            '@page { background-image: url(../images/a.png) }\n'
            'p:has(> img) { background: url("../images/a.png") }\n'
            '@media screen { @page { background: url(../images/a.png) } }\n'
            'div { background: url(../images/a.png)',
            'OEBPS/css/style.css')
        self.assertTrue(any(isinstance(rule, OpaqueRule) for rule in sheet.iter_rules()))
        self.inliner.inline_stylesheet(sheet)
        css = sheet.serialize()
        self.assertFalse('../images/a.png' in css)
        self.assertEqual(css.count('url(data:image/png;base64,'), 4)
        self.assertFalse('OEBPS/images/a.png' in self.package.unread_paths())
        self.assertTrue(self.report.ok)

    def test_cache(self):
        first = self.inliner.record('OEBPS/images/a.png')
        self.assertTrue(self.inliner.record('OEBPS/images/a.png') is first)
        self.assertTrue(self.inliner.record('nothing.png') is None)
        self.assertTrue(self.inliner.record('nothing.png') is None)
        self.assertEqual(len(self.report.warnings), 1)

    def test_total_size(self):
        self.assertTrue(self.inliner.check_total_size(100, 0))
        self.assertTrue(self.inliner.check_total_size(100, 1000))
        self.assertFalse(self.inliner.check_total_size(1000, 100))
        self.assertEqual(list(self.report.kinds()), ['size'])
