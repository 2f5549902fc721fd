#!/usr/bin/env python
#  -*- mode: python; indent-tabs-mode: nil; -*- coding: UTF8 -*-

"""

HTMLParser.py

Copyright 2024 by the unbook contributors

Distributable under the GNU General Public License Version 3 or newer.

Parse one document of the book into a ChapterFragment.

"""

import re

import lxml.html
from lxml import etree

from bs4 import BeautifulSoup

from libgutenberg.GutenbergGlobals import xpath
from libgutenberg.Logger import debug, info

from unbook.CommonCode import UnbookBadFileException
from unbook.parsers import (
    ParserBase, REB_HTML_CHARSET, REB_XML_CHARSET, em, is_remote, localize, resolve_path)

RE_XMLDECL = re.compile(r'^\s*<\?xml[^?]*\?>\s*')

REB_LOOKS_XML = re.compile(br'^(?:\xef\xbb\xbf)?\s*<\?xml|xmlns\s*=|-//W3C//DTD X', re.I)

# prefixes that html parsers leave glued to attribute names
ATTRIBUTE_PREFIXES = {
    'xlink': '',
    'xml': '',
    'epub': 'data-epub-',
}


class ChapterFragment(object):
    """ One document of the book, parsed.

    index is the position in reading order, path the package path the
    document was read from. Relative urls inside the tree are still
    relative to path.

    """

    def __init__(self, index, path, tree):
        self.index = index
        self.path = path
        self.tree = tree
        # ('link', package path) or ('style', css text), in document order
        self.stylesheets = []
        self.title = None


    @property
    def head(self):
        return self.tree.find('head')


    @property
    def body(self):
        return self.tree.find('body')


    def anchors(self):
        """ The set of ids defined in this fragment. """

        return {elem.get('id') for elem in xpath(self.tree, '//*[@id]')}


    def __repr__(self):
        return '<ChapterFragment %d %s>' % (self.index, self.path)


def fix_attribute_prefixes(tree):
    """ Rename 'xlink:href' style attributes the html parser left us. """

    for elem in tree.iter():
        if not isinstance(elem.tag, str):
            continue
        for key in list(elem.attrib.keys()):
            if ':' not in key:
                continue
            prefix, local = key.split(':', 1)
            value = elem.attrib.pop(key)
            if prefix == 'xmlns' or prefix not in ATTRIBUTE_PREFIXES:
                continue
            new_key = ATTRIBUTE_PREFIXES[prefix] + local
            if new_key not in elem.attrib:
                elem.set(new_key, value)


class Parser(ParserBase):
    """ Parse a html or xhtml document.

    Well-formed xhtml goes through the xml parser. Anything else, or
    xhtml that isn't well-formed after all, goes through BeautifulSoup
    with html5lib, which copes with whatever browsers cope with.

    """

    def get_charset_from_meta(self):
        head = self.bytes_content()[:2048]
        m = REB_XML_CHARSET.search(head) or REB_HTML_CHARSET.search(head)
        if m:
            return m.group(1).decode('ascii', 'replace')
        return None


    def parse_xml(self):
        """ Parse with the strict xhtml parser. Returns None on failure. """

        try:
            tree = etree.fromstring(
                self.bytes_content(),
                lxml.html.XHTMLParser(huge_tree=True, recover=False))
        except etree.ParseError as what:
            info('%s is not well-formed xhtml (%s), trying html5 parser' % (self.path, what))
            return None
        return localize(tree)


    def parse_html(self):
        """ Parse with html5lib. Raises UnbookBadFileException. """

        try:
            soup = BeautifulSoup(self.unicode_content(), 'html5lib')
        except (UnicodeError, ValueError) as what:
            raise UnbookBadFileException('Failed parsing %s: %s' % (self.path, what))

        if soup.html is None or soup.html.body is None:
            raise UnbookBadFileException('%s is not a usable html file' % self.path)

        # ancient browsers didn't understand stylesheets, so html comments
        # were used to hide the style text.
        xmlcomment = re.compile(r'<!--(.*?)-->', re.S)
        for commented_style in soup.find_all('style', string=xmlcomment):
            commented_style.string = xmlcomment.sub(r'\1', str(commented_style.string))

        html = RE_XMLDECL.sub('', soup.decode())
        if not html:
            raise UnbookBadFileException('No content in %s' % self.path)

        try:
            # the declared charset is stale now, so pin the encoding
            tree = lxml.html.document_fromstring(
                html.encode('utf-8'), parser=lxml.html.HTMLParser(encoding='utf-8'))
        except (etree.ParserError, etree.ParseError, ValueError) as what:
            raise UnbookBadFileException('Failed parsing %s: %s' % (self.path, what))
        fix_attribute_prefixes(tree)
        return tree


    def parse(self, index=0):
        """ Parse into a ChapterFragment. Raises UnbookBadFileException. """

        debug("HTMLParser.parse() %s ..." % self.path)

        tree = None
        if REB_LOOKS_XML.search(self.bytes_content()[:2048]):
            tree = self.parse_xml()
        if tree is None:
            tree = self.parse_html()

        if tree.tag == 'svg':
            # a page that is nothing but a picture
            tree = em.html(em.head(), em.body(tree))
        if tree.tag != 'html' or tree.find('body') is None:
            raise UnbookBadFileException('%s has no body' % self.path)
        if tree.find('head') is None:
            tree.insert(0, em.head())

        fragment = ChapterFragment(index, self.path, tree)
        self._extract_styles(fragment)
        self._fix_anchors(fragment)

        title = tree.find('head/title')
        if title is not None and title.text:
            fragment.title = ' '.join(title.text.split())

        debug("Done parsing %s", self.path)
        return fragment


    def _extract_styles(self, fragment):
        """ Pull stylesheet links and style elements out of the tree. """

        for elem in xpath(fragment.tree, '//link|//style'):
            if elem.tag == 'style':
                if elem.text and elem.text.strip():
                    fragment.stylesheets.append(('style', elem.text))
            else:
                href = elem.get('href') or ''
                rel = (elem.get('rel') or '').lower().split()
                if 'stylesheet' in rel and 'alternate' not in rel:
                    path, dummy_frag = resolve_path(self.path, href)
                    if path is not None:
                        fragment.stylesheets.append(('link', path))
                    else:
                        info('Dropping remote stylesheet %s in %s' % (href, self.path))
                elif href and is_remote(href):
                    continue
            elem.drop_tree()


    @staticmethod
    def _fix_anchors(fragment):
        """ Move anchor names to ids. """

        for anchor in xpath(fragment.tree, '//a[@name]'):
            name = anchor.get('name')
            if anchor.get('id') is None and name:
                anchor.set('id', name)
            del anchor.attrib['name']
