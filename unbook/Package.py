#!/usr/bin/env python
#  -*- mode: python; indent-tabs-mode: nil; -*- coding: UTF8 -*-

"""

Package.py

Copyright 2024 by the unbook contributors

Distributable under the GNU General Public License Version 3 or newer.

The files of one book, in memory.

A Package knows the documents of the book in reading order, the
stylesheets that apply to all of them, and every other file, and it
remembers which files were asked for and which of those it didn't
have.

"""

import os
import posixpath
import urllib.parse
import zipfile

from lxml import etree

from libgutenberg.GutenbergGlobals import xpath
from libgutenberg.Logger import debug, info, warning

from unbook.CommonCode import UnbookBadFileException, UnbookFatalError

# not in libgutenberg's NSMAP
CONTAINER_NSMAP = {'container': 'urn:oasis:names:tc:opendocument:xmlns:container'}

HTML_MEDIATYPES = ('application/xhtml+xml', 'text/html')


def normalize_path(path):
    """ A zip member name or manifest href as a package path. """

    path = posixpath.normpath(urllib.parse.unquote(path).replace('\\', '/'))
    return path.lstrip('/')


class Package(object):
    """ A book in memory.

    documents: package paths of the documents, in reading order
    stylesheets: package paths of stylesheets that apply to every document
    files: package path -> bytes, documents and stylesheets included

    """

    def __init__(self, name=None):
        self.name = name
        self.documents = []
        self.stylesheets = []
        self.files = {}
        self.metadata = None
        self.title = None
        self.cover_path = None
        self.read_paths = set()
        self.missing = set()
        # bookkeeping files that don't count as unread
        self.ignored = set()


    def add_file(self, path, data):
        self.files[normalize_path(path)] = data


    def add_document(self, path, data):
        path = normalize_path(path)
        self.files[path] = data
        if path not in self.documents:
            self.documents.append(path)


    def add_stylesheet(self, path, text):
        path = normalize_path(path)
        self.files[path] = text.encode('utf-8') if isinstance(text, str) else text
        if path not in self.stylesheets:
            self.stylesheets.append(path)


    def read_file(self, path):
        """ Return the bytes of path, or None if the package lacks it. """

        data = self.files.get(path)
        if data is None:
            self.missing.add(path)
            debug('Package %s has no file %s' % (self.name, path))
        else:
            self.read_paths.add(path)
        return data

    read_asset = read_file


    def unread_paths(self):
        """ Files that nothing asked for. """

        return set(self.files) - self.read_paths - self.ignored


    def missing_paths(self):
        return set(self.missing)


    def __str__(self):
        return '%s (%d documents, %d files)' % (self.name, len(self.documents), len(self.files))


class ZipPackage(Package):
    """ Base class for packages read from zip files. """

    @classmethod
    def open_zip(cls, filename):
        try:
            return zipfile.ZipFile(filename)
        except (zipfile.BadZipFile, OSError) as what:
            raise UnbookBadFileException('Cannot open %s as zip file: %s' % (filename, what))


    def read_zip(self, zf):
        for info_ in zf.infolist():
            if info_.is_dir():
                continue
            try:
                self.add_file(info_.filename, zf.read(info_))
            except (zipfile.BadZipFile, RuntimeError, OSError) as what:
                warning('Cannot read %s from %s: %s' % (info_.filename, self.name, what))


    @staticmethod
    def parse_xml(data, path):
        try:
            tree = etree.fromstring(data, etree.XMLParser(resolve_entities=False, recover=True))
        except etree.XMLSyntaxError as what:
            raise UnbookBadFileException('Cannot parse %s: %s' % (path, what))
        if tree is None:
            raise UnbookBadFileException('Cannot parse %s' % path)
        return tree


class HTMLZPackage(ZipPackage):
    """ A calibre HTMLZ file. """

    @classmethod
    def from_file(cls, filename):
        package = cls(os.path.basename(filename))
        with cls.open_zip(filename) as zf:
            package.read_zip(zf)

        if 'index.html' not in package.files:
            raise UnbookFatalError('index.html not found in HTMLZ %s' % filename)
        package.documents.append('index.html')
        if 'style.css' in package.files:
            package.stylesheets.append('style.css')

        opf = package.files.get('metadata.opf')
        if opf is not None:
            package.ignored.add('metadata.opf')
            package.metadata = opf.decode('utf-8', 'replace')
            tree = cls.parse_xml(opf, 'metadata.opf')
            if tree is not None:
                for title in xpath(tree, '//dc:title'):
                    package.title = title.text
                    break
                for ref in xpath(tree, '//*[local-name() = "reference"][@type = "cover"][@href]'):
                    package.cover_path = normalize_path(ref.get('href'))
                    break

        info('Read HTMLZ %s' % package)
        return package


class EpubPackage(ZipPackage):
    """ An EPUB 2 or 3 file. """

    @classmethod
    def from_file(cls, filename):
        package = cls(os.path.basename(filename))
        with cls.open_zip(filename) as zf:
            package.read_zip(zf)

        package.ignored.update(('mimetype', 'META-INF/container.xml'))
        container = package.files.get('META-INF/container.xml')
        if container is None:
            raise UnbookBadFileException('%s has no META-INF/container.xml' % filename)
        tree = cls.parse_xml(container, 'META-INF/container.xml')
        rootfiles = (tree.xpath('//container:rootfile[@media-type = "application/oebps-package+xml"]',
                                namespaces=CONTAINER_NSMAP)
                     or tree.xpath('//container:rootfile', namespaces=CONTAINER_NSMAP))
        if not rootfiles or not rootfiles[0].get('full-path'):
            raise UnbookBadFileException('Cannot locate OPF rootfile in %s' % filename)

        opf_path = normalize_path(rootfiles[0].get('full-path'))
        opf = package.files.get(opf_path)
        if opf is None:
            raise UnbookBadFileException('%s not found in %s' % (opf_path, filename))
        package.ignored.add(opf_path)
        package.parse_opf(cls.parse_xml(opf, opf_path), posixpath.dirname(opf_path))

        if not package.documents:
            raise UnbookFatalError('No documents in spine of %s' % filename)
        info('Read EPUB %s' % package)
        return package


    def parse_opf(self, opf, opf_dir):
        manifest = {}
        cover_id = None
        for item in xpath(opf, '//opf:manifest/opf:item[@id][@href]'):
            path = normalize_path(posixpath.join(opf_dir, item.get('href')))
            manifest[item.get('id')] = (path, item.get('media-type', ''))
            if 'cover-image' in item.get('properties', '').split():
                self.cover_path = path
            if item.get('media-type') == 'application/x-dtbncx+xml':
                self.ignored.add(path)
            if 'nav' in item.get('properties', '').split():
                # the toc page, read it only if the spine asks for it
                self.ignored.add(path)

        for meta in xpath(opf, '//opf:metadata/opf:meta[@name = "cover"][@content]'):
            cover_id = meta.get('content')
        if self.cover_path is None and cover_id in manifest:
            self.cover_path = manifest[cover_id][0]

        for title in xpath(opf, '//opf:metadata/dc:title'):
            self.title = title.text
            break

        for metadata in xpath(opf, '//opf:metadata'):
            self.metadata = etree.tostring(metadata, encoding='unicode')

        linear, nonlinear = [], []
        for itemref in xpath(opf, '//opf:spine/opf:itemref[@idref]'):
            entry = manifest.get(itemref.get('idref'))
            if entry is None:
                warning('Spine item %s not in manifest' % itemref.get('idref'))
                continue
            path, mediatype = entry
            if mediatype not in HTML_MEDIATYPES:
                debug('Skipping spine item %s of type %s' % (path, mediatype))
                continue
            if path not in self.files:
                self.missing.add(path)
                warning('Spine item %s not found' % path)
                continue
            if itemref.get('linear', 'yes') == 'no':
                nonlinear.append(path)
            else:
                linear.append(path)

        # non-linear documents go last, links into them must keep working
        for path in linear + nonlinear:
            if path not in self.documents:
                self.documents.append(path)
                self.ignored.discard(path)


class HTMLFilePackage(Package):
    """ One html file on disk, with its assets next to it. """

    def __init__(self, name=None, root=None):
        Package.__init__(self, name)
        self.root = root


    @classmethod
    def from_file(cls, filename):
        root = os.path.dirname(os.path.abspath(filename))
        package = cls(os.path.basename(filename), root)
        with open(filename, 'rb') as fp:
            package.add_document(package.name, fp.read())
        info('Read HTML %s' % package)
        return package


    def read_file(self, path):
        if path not in self.files and self.root:
            filename = os.path.join(self.root, *path.split('/'))
            if os.path.isfile(filename):
                with open(filename, 'rb') as fp:
                    self.files[path] = fp.read()
        return Package.read_file(self, path)

    read_asset = read_file


def open_package(filename):
    """ Read an EPUB, HTMLZ or HTML file into a Package. """

    if zipfile.is_zipfile(filename):
        with ZipPackage.open_zip(filename) as zf:
            names = set(zf.namelist())
        if 'META-INF/container.xml' in names:
            return EpubPackage.from_file(filename)
        if 'index.html' in names:
            return HTMLZPackage.from_file(filename)
        raise UnbookBadFileException('%s is neither EPUB nor HTMLZ' % filename)

    if os.path.splitext(filename)[1].lower() in ('.html', '.htm', '.xhtml'):
        return HTMLFilePackage.from_file(filename)
    raise UnbookBadFileException('Cannot read %s directly' % filename)

