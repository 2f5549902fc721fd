#!/usr/bin/env python
#  -*- mode: python; indent-tabs-mode: nil; -*- coding: UTF8 -*-

"""

FontPolicy.py

Copyright 2024 by the unbook contributors

Distributable under the GNU General Public License Version 3 or newer.

Decide which font stacks get replaced by the reader's fonts.

Serif and sans-serif stacks share one policy, monospace has its own.

The decision is made once, from the whole book, and then applied to
every stylesheet and style attribute alike.

"""

import enum

from libgutenberg.Logger import info

from unbook.CommonCode import UnbookConfigError, policy
from unbook.FontStacks import (
    FontCategory, classify_font_stack, font_stack_of, split_font_shorthand)
from unbook.parsers.CSSParser import UNBOOK_NOTE

PROSE_CATEGORIES = (FontCategory.SERIF, FontCategory.SANS_SERIF)
MONOSPACE_CATEGORIES = (FontCategory.MONOSPACE, )

# unclassified, cursive and fantasy stacks are never touched
REPLACEABLE_CATEGORIES = PROSE_CATEGORIES + MONOSPACE_CATEGORIES


class ReplacementMode(enum.Enum):
    NEVER = 'never'
    IF_ONE = 'if-one'
    ALWAYS = 'always'

    @classmethod
    def parse(cls, value):
        """ Accepts a ReplacementMode or one of its names. """

        if isinstance(value, cls):
            return value
        try:
            return cls(policy(value))
        except ValueError as what:
            raise UnbookConfigError(str(what))


    def wants_replacement(self, distinct_stacks):
        """ Decide for a group of categories with distinct_stacks. """

        if self is ReplacementMode.ALWAYS:
            return True
        if self is ReplacementMode.IF_ONE:
            return len(distinct_stacks) == 1
        return False


class ReplacementDecision(object):
    """ Which categories get replaced, and by what. Constant for a run. """

    def __init__(self, replacements=None):
        self.replacements = {category: family
                             for category, family in dict(replacements or {}).items()
                             if category in REPLACEABLE_CATEGORIES}


    def replacement_for(self, category):
        """ Return the replacement family for category, or None. """

        return self.replacements.get(category)


    def replaces(self, category):
        return category in self.replacements


    def __str__(self):
        if not self.replacements:
            return 'replace no font stacks'
        return ', '.join('replace %s with %s' % (category.value, family)
                         for category, family in self.replacements.items())


def decide(inventory, policy_serif_sans, policy_monospace, base_family, mono_family):
    """ Compute the ReplacementDecision for a StackInventory. """

    replacements = {}
    for categories, mode, family in (
            (PROSE_CATEGORIES, policy_serif_sans, base_family),
            (MONOSPACE_CATEGORIES, policy_monospace, mono_family)):
        mode = ReplacementMode.parse(mode)
        distinct = inventory.distinct(*categories)
        if mode.wants_replacement(distinct):
            for category in categories:
                replacements[category] = family
        elif mode is ReplacementMode.IF_ONE and distinct:
            info('Not replacing %s fonts: found %d different stacks'
                 % (' and '.join(c.value for c in categories), len(distinct)))

    decision = ReplacementDecision(replacements)
    info('Font decision: %s' % decision)
    return decision


def rewrite_declaration(decl, decision, annotate=True):
    """ Apply decision to one Declaration, in place.

    Returns True if the declaration was rewritten. With annotate the
    declaration remembers the family it had in a comment.

    """

    stack = font_stack_of(decl)
    if stack is None:
        return False
    replacement = decision.replacement_for(classify_font_stack(stack))
    if replacement is None:
        return False

    if decl.name == 'font-family':
        old = decl.value
        decl.value = replacement
    else:
        prefix, old = split_font_shorthand(decl.value)
        decl.value = prefix + replacement

    if annotate:
        decl.note = '/* was font-family: %s */ %s' % (old, UNBOOK_NOTE)
    return True
