#!/usr/bin/env python
#  -*- mode: python; indent-tabs-mode: nil; -*- coding: UTF8 -*-

"""

Parser Package

Copyright 2024 by the unbook contributors

Distributable under the GNU General Public License Version 3 or newer.

"""

import posixpath
import re
from urllib import parse as urlparse

import chardet
import lxml.html
from lxml import etree
from lxml.builder import ElementMaker

from libgutenberg.GutenbergGlobals import NS
from libgutenberg.Logger import debug, error

REB_XML_CHARSET = re.compile(br'^<\?xml[^>]*encoding\s*=\s*["\']([^"\'\s]+)', re.I)
REB_HTML_CHARSET = re.compile(br'<meta[^>]+charset\s*=\s*["\']?([-\w.:]+)', re.I)
REB_CSS_CHARSET = re.compile(br'^@charset\s+["\']([^"\']+)["\']\s*;', re.I)

# all bogus encoding names seen in the wild go in here
BOGUS_CHARSET_NAMES = {'iso-latin-1': 'iso-8859-1',
                       'big5': 'big5hkscs',
                       'big-5': 'big5hkscs',

                       # python has bogus codec name
                       'macintosh': 'mac_roman',
                      }

# exported
em = ElementMaker(makeelement=lxml.html.html_parser.makeelement)


def localize(tree):
    """ Strip all namespaces from tree, in place.

    Tags lose their namespace. xlink:href becomes href, epub:type
    becomes data-epub-type, xml:lang becomes lang. Everything
    downstream works on plain html element names.

    """

    for elem in tree.iter():
        if not isinstance(elem.tag, str):
            # comments and processing instructions
            continue
        elem.tag = etree.QName(elem).localname
        for key in list(elem.attrib.keys()):
            if not key.startswith('{'):
                continue
            qname = etree.QName(key)
            value = elem.attrib.pop(key)
            if qname.namespace == str(NS.epub):
                new_key = 'data-epub-' + qname.localname
            else:
                new_key = qname.localname
            if new_key not in elem.attrib:
                elem.set(new_key, value)
    etree.cleanup_namespaces(tree)
    return tree


def is_remote(url):
    """ True if url is not a path into the package. """

    parts = urlparse.urlsplit(url)
    return bool(parts.scheme or parts.netloc or url.startswith('//'))


def resolve_path(base, url):
    """ Resolve url against the package path base.

    Returns (path, fragment). Path is None for remote urls, data urls
    and urls that leave the package. A bare fragment resolves to base.

    """

    url = url.strip()
    if not url or is_remote(url):
        return None, None

    url, frag = urlparse.urldefrag(url)
    url = url.split('?', 1)[0]
    if not url:
        return base, frag
    path = urlparse.unquote(url)
    if not path.startswith('/'):
        path = posixpath.join(posixpath.dirname(base or ''), path)
    path = posixpath.normpath(path).lstrip('/')
    if path.startswith('../') or path == '..':
        return None, None
    return path, frag


class ParserBase(object):
    """ Base class for the html and css parsers.

    Holds the raw bytes of one package file and knows how to turn
    them into text.

    """

    def __init__(self, path, data):
        self.path = path
        self.buffer = data
        self.unicode_buffer = None
        self.charset = None


    def bytes_content(self):
        """ Get document content as raw bytes. """
        return self.buffer or b''


    def get_charset_from_meta(self):
        """ Parse document for a declared charset.

        Override this as required.

        """

        return None


    def guess_charset_from_body(self):
        """ Guess charset from text. """

        result = chardet.detect(self.bytes_content())
        charset = result.get('encoding')
        if charset:
            debug('Got charset %s from text sniffing in %s' % (charset, self.path))
            return charset
        return None


    def unicode_content(self):
        """ Get document content as unicode string. """

        if self.unicode_buffer is None:
            data = (self.decode(self.get_charset_from_meta()) or
                    self.decode('utf-8') or
                    self.decode(self.guess_charset_from_body()) or
                    self.decode('windows-1252'))

            if data is None:
                raise UnicodeError("Cannot decode %s ... giving up." % self.path)

            # normalize line-endings
            if '\r' in data or '\u2028' in data:
                data = '\n'.join(data.splitlines())
            self.unicode_buffer = data

        return self.unicode_buffer


    def decode(self, charset):
        """ Try to decode document contents to unicode. """
        if charset is None:
            return None

        charset = charset.lower().strip()

        if charset in BOGUS_CHARSET_NAMES:
            charset = BOGUS_CHARSET_NAMES[charset]

        if charset in ('utf-8', 'utf8'):
            charset = 'utf_8_sig'

        try:
            debug("Trying to decode %s with charset %s ..." % (self.path, charset))
            buffer = self.bytes_content().decode(charset)
            self.charset = charset
            return buffer
        except LookupError as what:
            # unknown charset,
            error("Invalid charset name: %s (%s)" % (charset, what))
        except UnicodeError as what:
            # mis-stated charset, did not decode
            debug("Text not in charset %s (%s)" % (charset, what))
        return None
