#!/usr/bin/env python
#  -*- mode: python; indent-tabs-mode: nil; -*- coding: UTF8 -*-

"""

DocumentMerger.py

Copyright 2024 by the unbook contributors

Distributable under the GNU General Public License Version 3 or newer.

Join the documents of a book into one html tree.

All ids end up in one document, so ids defined in more than one
fragment get renamed, and all links between fragments get rewritten to
point into the merged document.

"""

import urllib.parse

from libgutenberg.GutenbergGlobals import xpath
from libgutenberg.Logger import debug

from unbook.parsers import em, is_remote, resolve_path

BOUNDARY_ID = 'unbook-fragment-%d'
SKIP_COVER_ID = 'unbook-skip-cover'

# attributes holding space separated lists of ids in the same document
IDREF_ATTRIBUTES = ('for', 'headers', 'list', 'form', 'aria-labelledby',
                    'aria-describedby', 'aria-controls', 'aria-owns', 'aria-flowto')


def normalize_uri(uri):
    """ Normalize URI for idmap. """
    return urllib.parse.unquote(uri)


class MergedDocument(object):
    """ The one document the fragments were merged into. """

    def __init__(self, tree, idmap, fragment_count):
        self.tree = tree
        # 'path' and 'path#id' of the original documents -> final id
        self.idmap = idmap
        self.fragment_count = fragment_count

    @property
    def head(self):
        return self.tree.find('head')

    @property
    def body(self):
        return self.tree.find('body')

    def anchors(self):
        return {elem.get('id') for elem in xpath(self.tree, '//*[@id]')}


class DocumentMerger(object):
    """ Merge ChapterFragments in reading order.

    Usage: DocumentMerger(report).merge(fragments)

    The first fragment to define an id keeps it. A later fragment
    defining the same id gets it renamed to <id>-<fragment index>.
    Every fragment starts with an empty anchor with the id
    unbook-fragment-<fragment index>, links to a whole document point
    there.

    """

    def __init__(self, report=None):
        self.report = report
        self.owners = {}
        self.idmap = {}
        self.renames = {}
        self.paths = {}
        self.dangling = set()


    def merge(self, fragments):
        fragments = list(fragments)
        if not fragments:
            raise ValueError('Nothing to merge')

        for fragment in fragments:
            self.owners[BOUNDARY_ID % fragment.index] = None
        self.owners[SKIP_COVER_ID] = None

        for fragment in fragments:
            self.paths[fragment.path] = fragment
            self.idmap[normalize_uri(fragment.path)] = BOUNDARY_ID % fragment.index
            self.claim_ids(fragment)

        for fragment in fragments:
            self.rewrite_idrefs(fragment)
            self.rewrite_links(fragment)

        tree = self.build_tree(fragments)
        debug('Merged %d fragments, renamed %d ids' % (
            len(fragments), sum(len(r) for r in self.renames.values())))
        return MergedDocument(tree, self.idmap, len(fragments))


    def _unique_id(self, id_, index):
        new_id = '%s-%d' % (id_, index)
        n = 2
        while new_id in self.owners:
            new_id = '%s-%d-%d' % (id_, index, n)
            n += 1
        return new_id


    def claim_ids(self, fragment):
        """ Take ownership of the ids of fragment, renaming collisions. """

        renames = self.renames.setdefault(fragment.index, {})
        for elem in xpath(fragment.tree, '//*[@id]'):
            id_ = elem.get('id')
            if id_ in self.owners:
                new_id = self._unique_id(id_, fragment.index)
                elem.set('id', new_id)
                if self.owners[id_] != fragment.index:
                    # the first one of a fragment's duplicates is the link target
                    renames.setdefault(id_, new_id)
                debug('Renaming id %s in %s to %s' % (id_, fragment.path, new_id))
            else:
                new_id = id_
            self.owners[new_id] = fragment.index

            key = '%s#%s' % (normalize_uri(fragment.path), id_)
            if key not in self.idmap:
                self.idmap[key] = new_id


    def rewrite_idrefs(self, fragment):
        """ Follow renames in attributes that refer to ids. """

        renames = self.renames.get(fragment.index)
        if not renames:
            return
        for attr in IDREF_ATTRIBUTES:
            for elem in xpath(fragment.tree, '//*[@%s]' % attr):
                ids = elem.get(attr).split()
                if any(i in renames for i in ids):
                    elem.set(attr, ' '.join(renames.get(i, i) for i in ids))


    def rewrite_links(self, fragment):
        """ Rewrite links to point into the merged document. """

        for elem in xpath(fragment.tree, '//*[@href]'):
            href = elem.get('href')
            if href.lower().startswith(('data:', 'javascript:')) or is_remote(href):
                continue
            path, frag = resolve_path(fragment.path, href)
            if path is None:
                continue
            if path not in self.paths:
                # some file in the package that is not a document
                continue

            if not frag:
                elem.set('href', '#' + BOUNDARY_ID % self.paths[path].index)
                continue

            key = '%s#%s' % (normalize_uri(path), normalize_uri(frag))
            try:
                elem.set('href', '#' + urllib.parse.quote(self.idmap[key]))
            except KeyError:
                self.dangling_link(fragment, href, key)
                if path != fragment.path:
                    elem.set('href', '#' + BOUNDARY_ID % self.paths[path].index)


    def dangling_link(self, fragment, href, key):
        debug("Link '%s' in %s points to nonexistent id" % (href, fragment.path))
        if key not in self.dangling:
            self.dangling.add(key)
            if self.report is not None:
                self.report.warn('dangling-link', 'Link to nonexistent anchor: %s', key)


    def build_tree(self, fragments):
        """ Move all fragment bodies into one new body. """

        first = fragments[0]
        head = first.head
        body_attribs = {k: v for k, v in first.body.attrib.items() if k != 'id'}
        body = em.body(**body_attribs)
        body.text = '\n'
        tree = em.html(head, body, **dict(first.tree.attrib))

        for fragment in fragments:
            fragment_body = fragment.body
            anchor = em.a(id=BOUNDARY_ID % fragment.index)
            anchor.tail = '\n'
            body.append(anchor)

            if fragment_body.get('id'):
                body_anchor = em.a(id=fragment_body.get('id'))
                body_anchor.tail = '\n'
                body.append(body_anchor)

            attribs = {k: v for k, v in fragment_body.attrib.items() if k != 'id'}
            if attribs != body_attribs:
                container = em.div(**attribs)
                container.tail = '\n'
                body.append(container)
                container.text = fragment_body.text
            else:
                container = body
                anchor = body[-1]
                anchor.tail = (anchor.tail or '') + (fragment_body.text or '')

            for child in list(fragment_body):
                container.append(child)

        return tree
