#!/usr/bin/env python
#  -*- mode: python; indent-tabs-mode: nil; -*- coding: UTF8 -*-

"""

Writer package

Copyright 2024 by the unbook contributors

Distributable under the GNU General Public License Version 3 or newer.

Helpers to put things into the head of the merged document and to get
it out to disk.

"""

import re

from lxml import etree

from libgutenberg.GutenbergGlobals import xpath
from libgutenberg.Logger import debug, info

from unbook.parsers import em

HTML5_DOCTYPE = '<!DOCTYPE html>'


def remove_cr(content):
    content = re.sub(r'\s*[\r\n]+\s*', '\n', content)
    return content


def serialize(html):
    """ Serialize an html tree to utf-8 bytes with html5 doctype. """

    htmlbytes = etree.tostring(html,
                               method='html',
                               doctype=HTML5_DOCTYPE,
                               encoding='utf-8',
                               pretty_print=False)

    # lxml refuses to omit close tags for these elements
    for newtag in [b'</wbr>',]:
        htmlbytes = htmlbytes.replace(newtag, b'')

    return htmlbytes


class HTMLishWriter(object):
    """ Put things into the head of an html tree.

    Elements are appended in call order, each followed by a newline.

    """

    @staticmethod
    def _append(html, elem):
        for head in xpath(html, '/html/head'):
            elem.tail = '\n'
            head.append(elem)
        return elem


    @staticmethod
    def add_charset(html):
        """ Make 'meta charset=utf-8' the first thing in head. """

        for head in xpath(html, '/html/head'):
            for meta in xpath(head, 'meta[@charset or @http-equiv]'):
                if meta.get('charset') or meta.get('http-equiv', '').lower() in (
                        'content-type', 'content-security-policy'):
                    meta.drop_tree()
            meta = em.meta(charset='utf-8')
            meta.tail = '\n'
            head.insert(0, meta)
            if head.text and not head.text.strip():
                head.text = '\n'


    @staticmethod
    def add_meta(html, name, content):
        """ Add a meta tag. """

        return HTMLishWriter._append(html, em.meta(name=name, content=remove_cr(content)))


    @staticmethod
    def add_http_equiv(html, http_equiv, content):
        """ Add a pragma directive meta tag. """

        return HTMLishWriter._append(
            html, em.meta(**{'http-equiv': http_equiv, 'content': remove_cr(content)}))


    @staticmethod
    def add_internal_css(html, css_as_string):
        """ Add internal stylesheet to html. """

        if css_as_string and html is not None:
            css_as_string = '\n' + css_as_string.strip(' \n') + '\n'
            return HTMLishWriter._append(html, em.style(css_as_string))
        return None


    @staticmethod
    def add_script(html, script, **attribs):
        return HTMLishWriter._append(html, em.script(script, **attribs))


    @staticmethod
    def add_comment(html, text):
        """ Add a comment right after the charset meta. """

        for head in xpath(html, '/html/head'):
            comment = etree.Comment(text)
            comment.tail = '\n'
            head.insert(1 if len(head) and head[0].get('charset') else 0, comment)


    @staticmethod
    def set_title(html, title):
        """ Set the title if the document has none. """

        for head in xpath(html, '/html/head'):
            if head.find('title') is None and title:
                elem = em.title(' '.join(title.split()))
                elem.tail = '\n'
                head.append(elem)


class HTMLWriter(object):
    """ Write the serialized document. """

    @staticmethod
    def write(filename, bytes_, force=False):
        """ Write bytes_ to filename.

        Refuses to overwrite an existing file unless force. Raises
        FileExistsError.

        """

        mode = 'wb' if force else 'xb'
        debug('Writing %d bytes to %s' % (len(bytes_), filename))
        with open(filename, mode) as fp:
            fp.write(bytes_)
        info('Done writing %s' % filename)
