#!/usr/bin/env python
# -*- coding: utf-8 -*-
'''
run this with
python -m unittest -v tests.test_package
'''

import os
import shutil
import tempfile
import unittest
import zipfile

from unbook.CommonCode import UnbookBadFileException, UnbookFatalError
from unbook.Package import (
    EpubPackage, HTMLFilePackage, HTMLZPackage, Package, normalize_path, open_package)


def make_zip(src_dir, filename, skip=()):
    """ Zip src_dir, mimetype first and stored, like an epub wants it. """
    with zipfile.ZipFile(filename, 'w') as zf:
        mimetype = os.path.join(src_dir, 'mimetype')
        if os.path.exists(mimetype):
            zf.write(mimetype, 'mimetype', zipfile.ZIP_STORED)
        for root, dirs, files in os.walk(src_dir):
            dirs.sort()
            for name in sorted(files):
                path = os.path.join(root, name)
                arcname = os.path.relpath(path, src_dir).replace(os.sep, '/')
                if arcname != 'mimetype' and arcname not in skip:
                    zf.write(path, arcname, zipfile.ZIP_DEFLATED)
    return filename


class TestPackage(unittest.TestCase):

    def test_normalize_path(self):
        self.assertEqual(normalize_path('OEBPS/text/../images/a%20b.png'), 'OEBPS/images/a b.png')
        self.assertEqual(normalize_path('/index.html'), 'index.html')
        self.assertEqual(normalize_path('images\\a.png'), 'images/a.png')

    def test_bookkeeping(self):
        package = Package('test')
        package.add_document('text/ch1.html', b'<html/>')
        package.add_document('text/ch1.html', b'<html/>')
        package.add_stylesheet('style.css', 'p { color: red }')
        package.add_file('images/a.png', b'png')
        package.add_file('images/b.png', b'png')

        self.assertEqual(package.documents, ['text/ch1.html'])
        self.assertEqual(package.files['style.css'], b'p { color: red }')

        self.assertEqual(package.read_file('images/a.png'), b'png')
        self.assertTrue(package.read_asset('images/c.png') is None)
        self.assertEqual(package.missing_paths(), {'images/c.png'})
        self.assertEqual(package.unread_paths(), {'text/ch1.html', 'style.css', 'images/b.png'})
        self.assertTrue('1 documents' in str(package))


class TestZipPackages(unittest.TestCase):

    def setUp(self):
        self.sample_dir = os.path.join(os.path.dirname(__file__), 'files')
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_epub(self):
        filename = make_zip(os.path.join(self.sample_dir, 'epub'),
                            os.path.join(self.tmpdir, 'sample.epub'))
        package = open_package(filename)
        self.assertTrue(isinstance(package, EpubPackage))
        self.assertEqual(package.name, 'sample.epub')
        self.assertEqual(package.title, 'The Sample Book')
        self.assertTrue('A. Writer' in package.metadata)
        self.assertEqual(package.cover_path, 'OEBPS/images/cover.svg')

        # non-linear documents go last
        self.assertEqual(package.documents, [
            'OEBPS/text/ch1.xhtml', 'OEBPS/text/ch2.xhtml', 'OEBPS/text/notes.xhtml'])
        self.assertEqual(package.missing_paths(), {'OEBPS/text/lost.xhtml'})

        unread = package.unread_paths()
        for path in ('mimetype', 'META-INF/container.xml', 'OEBPS/content.opf',
                     'OEBPS/toc.ncx', 'OEBPS/nav.xhtml'):
            self.assertFalse(path in unread, path)
        self.assertTrue('OEBPS/images/dot.svg' in unread)

    def test_epub_without_container(self):
        filename = make_zip(os.path.join(self.sample_dir, 'epub'),
                            os.path.join(self.tmpdir, 'broken.epub'),
                            skip=('META-INF/container.xml', ))
        self.assertRaises(UnbookBadFileException, EpubPackage.from_file, filename)

    def test_htmlz(self):
        filename = make_zip(os.path.join(self.sample_dir, 'htmlz'),
                            os.path.join(self.tmpdir, 'sample.htmlz'))
        package = open_package(filename)
        self.assertTrue(isinstance(package, HTMLZPackage))
        self.assertEqual(package.documents, ['index.html'])
        self.assertEqual(package.stylesheets, ['style.css'])
        self.assertEqual(package.title, 'Sample HTMLZ')
        self.assertEqual(package.cover_path, 'cover.svg')
        self.assertTrue('dc:title' in package.metadata)
        self.assertFalse('metadata.opf' in package.unread_paths())

    def test_htmlz_without_index(self):
        filename = make_zip(os.path.join(self.sample_dir, 'htmlz'),
                            os.path.join(self.tmpdir, 'broken.htmlz'),
                            skip=('index.html', ))
        self.assertRaises(UnbookFatalError, HTMLZPackage.from_file, filename)

    def test_html_file(self):
        package = open_package(os.path.join(self.sample_dir, 'plain', 'book.html'))
        self.assertTrue(isinstance(package, HTMLFilePackage))
        self.assertEqual(package.documents, ['book.html'])
        self.assertTrue(package.read_file('images/dot.svg').startswith(b'<svg'))
        self.assertTrue(package.read_file('images/nothing.svg') is None)
        self.assertEqual(package.missing_paths(), {'images/nothing.svg'})

    def test_not_a_book(self):
        filename = os.path.join(self.tmpdir, 'book.txt')
        with open(filename, 'w') as fp:
            fp.write('just text')
        self.assertRaises(UnbookBadFileException, open_package, filename)

        filename = os.path.join(self.tmpdir, 'other.zip')
        with zipfile.ZipFile(filename, 'w') as zf:
            zf.writestr('readme.txt', 'hello')
        self.assertRaises(UnbookBadFileException, open_package, filename)
        self.assertRaises(UnbookBadFileException, HTMLZPackage.open_zip,
                          os.path.join(self.tmpdir, 'book.txt'))
