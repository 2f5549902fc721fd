#!/usr/bin/env python
#  -*- mode: python; indent-tabs-mode: nil; -*- coding: UTF8 -*-

"""

StyleFixer.py

Copyright 2024 by the unbook contributors

Distributable under the GNU General Public License Version 3 or newer.

Rewrite book css for comfortable reading.

Every change leaves a /* unbook */ comment in the output, so a reader
of the generated file can tell book css from ours.

"""

import collections
import re

from libgutenberg.Logger import debug

from unbook.FontPolicy import rewrite_declaration
from unbook.parsers.CSSParser import Declaration, Ruleset, UNBOOK_NOTE, parse_color

# values max() can take
RE_NUMERIC = re.compile(r'^(?:[-+]?(?:\d|\.\d)|(?:calc|min|max|clamp|var)\()', re.I)

RE_SMALL_MARGIN = re.compile(r'^(?:0?\.[123]\d?em|[1234](?:\.\d+)?px|[1234](?:\.\d+)?pt)$', re.I)

FLOORS = {
    'font-size': '--min-font-size',
    'line-height': '--min-line-height',
}


def is_paragraph_rule(rule):
    """ Guess if a rule styles body text paragraphs. """

    selectors = rule.selector_text
    return ((selectors.startswith('.calibre') and
             any(d.name == 'text-indent' for d in rule.declarations)) or
            selectors in ('.indent', '.noindent', '.indent-para') or
            '.para' in selectors or
            selectors.startswith('.class_indent'))


def is_page_background_rule(rule):
    """ Rules that converters put on the whole body. """

    selectors = rule.selector_text
    return selectors == '.calibre' or selectors.startswith('.x-ebookmaker')


def floor_value(decl):
    """ Make decl at least var(--min-...). Returns True if changed. """

    var = FLOORS.get(decl.name)
    if var is None or var in decl.value or not RE_NUMERIC.match(decl.value):
        return False
    decl.value = 'max(%s, var(%s))' % (decl.value, var)
    return True


class StyleFixer(object):
    """ Apply the font decision and the readability fixes to css. """

    def __init__(self, options, decision):
        self.decision = decision
        self.inside_bgcolor = parse_color(options.inside_bgcolor)
        self.threshold = float(options.inside_bgcolor_similarity_threshold)
        self.counts = collections.Counter()


    def fix_stylesheet(self, sheet):
        for rule in sheet.iter_rules():
            if isinstance(rule, Ruleset):
                self.fix_ruleset(rule)
        debug('Fixed css in %s: %s' % (sheet.path or 'inline style', dict(self.counts)))


    def similar_to_inside_bgcolor(self, value):
        if self.inside_bgcolor is None:
            return False
        color = parse_color(value)
        if color is None:
            return False
        limit = self.threshold * 255
        return all(abs(ours - theirs) <= limit
                   for ours, theirs in zip(self.inside_bgcolor, color))


    def fix_ruleset(self, rule):
        paragraph = is_paragraph_rule(rule)
        background = is_page_background_rule(rule)

        declarations = []
        for decl in rule.declarations:
            declarations.append(decl)
            if decl.removed:
                continue
            name = decl.name
            value = decl.value.strip()

            if rewrite_declaration(decl, self.decision):
                self.counts['font-family'] += 1

            elif name in FLOORS:
                if floor_value(decl):
                    decl.note = UNBOOK_NOTE
                    self.counts[name] += 1

            elif name == 'text-align' and value.lower() == 'justify':
                decl.removed = True
                self.counts[name] += 1

            elif paragraph and name in ('margin-top', 'margin-bottom') and RE_SMALL_MARGIN.match(value):
                decl.value = '0'
                decl.note = '/* was %s: %s; */ %s' % (name, value, UNBOOK_NOTE)
                self.counts[name] += 1

            elif (background and name in ('background', 'background-color') and
                  self.similar_to_inside_bgcolor(value)):
                decl.value = 'inherit'
                decl.note = '/* was background-color: %s; */ %s' % (value, UNBOOK_NOTE)
                self.counts[name] += 1

            elif name == 'vertical-align' and value.lower() == 'super':
                # same treatment as sup in the base css
                decl.value = 'baseline'
                decl.note = '/* was vertical-align: super; */ %s' % UNBOOK_NOTE
                for extra_name, extra_value in (('position', 'relative'), ('top', '-0.4em')):
                    extra = Declaration(extra_name, extra_value)
                    extra.note = UNBOOK_NOTE
                    declarations.append(extra)
                self.counts[name] += 1

        rule.declarations = declarations


    def fix_style_attribute(self, declarations):
        """ Fix the Declarations of a style attribute.

        Only the font decision and the floors apply here. Returns True
        if anything changed.

        """

        changed = False
        for decl in declarations:
            if rewrite_declaration(decl, self.decision, annotate=False):
                self.counts['font-family'] += 1
                changed = True
            elif floor_value(decl):
                self.counts[decl.name] += 1
                changed = True
        return changed
