#!/usr/bin/env python
#  -*- mode: python; indent-tabs-mode: nil; -*- coding: UTF8 -*-

"""

FontStacks.py

Copyright 2024 by the unbook contributors

Distributable under the GNU General Public License Version 3 or newer.

Find the font stacks a book uses and sort them into generic families.

Books don't always end a font-family list with a generic family, so
we also need to recognize the faces commonly found in ebooks.

Classification rule: if the list names any generic family, the last
one wins, because that is what a browser falls back to in the end.
Otherwise the first known face decides. A stack with neither is
unclassified and never touched.

"""

import collections
import enum
import re

from libgutenberg.Logger import debug


class FontCategory(enum.Enum):
    SERIF = 'serif'
    SANS_SERIF = 'sans-serif'
    MONOSPACE = 'monospace'
    CURSIVE = 'cursive'
    FANTASY = 'fantasy'
    UNCLASSIFIED = 'unknown'


# report order
CATEGORIES = (
    FontCategory.UNCLASSIFIED,
    FontCategory.SERIF,
    FontCategory.SANS_SERIF,
    FontCategory.MONOSPACE,
    FontCategory.FANTASY,
    FontCategory.CURSIVE,
)

GENERIC_FAMILIES = {
    'serif': FontCategory.SERIF,
    'ui-serif': FontCategory.SERIF,
    'sans-serif': FontCategory.SANS_SERIF,
    'sans serif': FontCategory.SANS_SERIF, # typo seen in a few books
    'ui-sans-serif': FontCategory.SANS_SERIF,
    'ui-rounded': FontCategory.SANS_SERIF,
    'system-ui': FontCategory.SANS_SERIF,
    'monospace': FontCategory.MONOSPACE,
    'ui-monospace': FontCategory.MONOSPACE,
    'cursive': FontCategory.CURSIVE,
    'fantasy': FontCategory.FANTASY,
}

# Based on https://www.w3.org/Style/Examples/007/fonts.en.html
# with the faces seen in real ebooks added.
#
# https://developer.mozilla.org/en-US/docs/Web/CSS/font-family
# https://en.wikipedia.org/wiki/List_of_typefaces_included_with_Microsoft_Windows

KNOWN_FACES = {
    FontCategory.SERIF: """
        Times
        TimesBold
        TimesBoldItalic
        TimesItalic
        Timesb
        Timesbi
        Timesbd
        Timesi
        Times (T1)
        Times New Roman
        Times New Roman Bold
        Times New Roman Bold Italic
        Times New Roman Italic
        Times New RomanB
        Times New RomanBI
        Times New RomanI
        TimesNewRomanPSMT
        Antiqua
        ANTQUAB
        ANTQUABI
        ANTQUAI
        Book Antiqua
        Didot
        Georgia
        Cambria
        Baskerville
        BaskervilleBold
        Palatino
        Palatino Linotype
        Palatino LT
        Garamond
        Adobe Garamond
        Adobe Garamond Pro
        AGaramondPro
        EB Garamond
        URW Palladio L
        Bookman
        URW Bookman L
        New Century Schoolbook
        TeX Gyre Schola
        American Typewriter
        BergamoStd
        Charis
        CharisSIL
        Charis SIL
        Charis SIL Regular
        Charis SIL Bold
        Charis SIL Bold Italic
        Charis SIL Italic
        CharisSILR
        CharisSILB
        CharisSILBI
        CharisSILI
        Bitstream Vera Serif
        DejaVu Serif
        DejaVu Serif Bold
        DejaVu Serif Bold Italic
        DejaVu Serif Italic
        DejaVuSerif
        Shift
        Shift Light
        Alegreya
        Gentium
        Gentium Plus
        Gentium Book Basic
        Genr102
        Geni102
        Sylfaen
        Bodoni LT Pro
        Constantia
        Constantia Italic
        Adobe Caslon Pro
        Linux Libertine
        LinLibertine
        Liberation Serif
        FreeSerif
        FreeFontSerif
        FreeSerifItalic
        Minion
        Minion Pro
        Minion Pro Cond
        Kozuka Mincho Pr6N
        Kozuka Mincho Pr6N L
        Kozuka Mincho Pr6N R
        Trajan Pro
        Janson Text LT Std
        Adobe Song Std
        AdobeSongStd-Light
        VeljovicStd
        ITC Fenice Std
        Stempel Garamond LT Std
        Noto Serif
        Source Serif Pro
        Crimson Text
        STKai
        Traveling _Typewriter
    """,

    FontCategory.SANS_SERIF: """
        Arial
        Arialb
        Arialbi
        Ariali
        ArialBold
        ArialBoldItalic
        ArialItalic
        Arial Unicode
        Arial Unicode MS
        ArialUnicodeMS
        ARIALUNI
        Arial Narrow
        Helvetica
        Helvetica Neue
        HelveticaNeueLTStd
        HelveticaNeueLTStd-BdCn
        HelveticaNeueLTStd-BdCnO
        HelveticaNeueLTStd-Cn
        HelveticaNeueLTStd-Md
        HelveticaNeueLTStd-MdCn
        HelveticaNeueLTStd-MdCnO
        Helvetica LT
        Verdana
        Trebuchet MS
        Tahoma
        Lucida Grande
        Lucida Sans
        Calibri
        CALIBRIB
        CALIBRII
        Gill Sans
        Noto Sans
        Avantgarde
        DejaVu Sans
        DejaVuSans
        Bitstream Vera Sans
        TeX Gyre Adventor
        URW Gothic L
        Optima
        Gotham
        AtkinsonHyperlegible
        Atkinson Hyperlegible
        Roboto
        Inter
        PT Sans
        Open Sans
        Source Sans Pro
        Segoe UI
        Geneva
        Candara
        Franklin
        Franklin Medium
        Franklin Gothic
        Futura
        Futura Bold
        Futura Std Book
        DIN Next LT Pro
        Trade Gothic Next LT Pro
        Myriad
        Myriad Pro
        MyriadPro-Regular
        MyriadPro-Bold
        MyriadPro-BoldIt
        MyriadPro-It
        Quicksand
        Alegreya Sans
        Fort-Book
        Free Sans
        Free Sans Bold
        FreeSans
        Liberation
        Liberation Sans
        LiberationNarrow
        RotisSansSerif
        MgOpen Modata
        ＭＳ Ｐゴシック
        KaiTi
        SimHei
        AkzidenzStd
        ITCAvantGardeStd
        TradeGothicLTStd18
        TradeGothicLTStd20
        -apple-system
        BlinkMacSystemFont
    """,

    FontCategory.MONOSPACE: """
        Andale Mono
        Courier
        Courier New
        Courier New Bold
        Courier New Bold Italic
        Courier New Italic
        FreeMono
        OCR A Std
        DejaVu Sans Mono
        DejaVu Sans Mono Bold
        DejaVu Sans Mono Bold Oblique
        DejaVu Sans Mono Oblique
        Liberation Mono
        Consolas
        Menlo
        Monaco
        Lucida Console
        UbuntuMono
        Ubuntu Mono
        Ubuntu Mono Bold
        Ubuntu Mono BoldItal
        Ubuntu Mono Ital
        Inconsolata
        Inconsolata Mono
        Source Code Pro
    """,

    FontCategory.CURSIVE: """
        Comic Sans MS
        Comic Sans
        Segoe Script
        Apple Chancery
        Bradley Hand
        Lucida Calligraphy
        Lucida Handwriting
        Brush Script MT
        Brush Script Std
        Snell Roundhand
        URW Chancery L
        Great Vibes
    """,

    FontCategory.FANTASY: """
        Impact
        Luminari
        Chalkduster
        Jazz LET
        Blippo
        Stencil Std
        Marker Felt
        Segoe Print
        Trattatello
    """,
}

FACE_TO_CATEGORY = {}
for _category, _faces in KNOWN_FACES.items():
    for _face in _faces.strip().splitlines():
        FACE_TO_CATEGORY[_face.strip().lower()] = _category

# font-family values that are not a list of families
CSS_WIDE_KEYWORDS = {'inherit', 'initial', 'unset', 'revert', 'revert-layer', 'default'}

# font shorthand values that name a system font
SYSTEM_FONTS = {'caption', 'icon', 'menu', 'message-box', 'small-caption', 'status-bar'}

RE_FAMILY = re.compile(r'"[^"]*"|\'[^\']*\'|[^,]+')

RE_FONT_SIZE = re.compile(
    r'^(?:xx-small|x-small|small|medium|large|x-large|xx-large|xxx-large|smaller|larger'
    r'|[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[a-z]+|%)|0'
    r'|(?:calc|min|max|clamp)\(.*\))(?:/.*)?$', re.I)


def parse_family_list(value):
    """ Split a font-family value into family names. """

    names = []
    for m in RE_FAMILY.finditer(value):
        name = m.group(0).strip(' \t\n\'"')
        if name:
            names.append(' '.join(name.split()))
    return names


class FontStack(collections.namedtuple('FontStack', 'key names')):
    """ One font-family list.

    Two stacks are the same if they name the same families in the
    same order, no matter how they are quoted or spaced.

    """

    __slots__ = ()

    @classmethod
    def parse(cls, value):
        names = tuple(parse_family_list(value))
        return cls(', '.join(names), names)

    def __str__(self):
        return self.key


def classify_font_stack(stack):
    """ Return the FontCategory of a FontStack or font-family value. """

    if isinstance(stack, str):
        stack = FontStack.parse(stack)
    names = [name.lower() for name in stack.names]

    generics = [GENERIC_FAMILIES[name] for name in names if name in GENERIC_FAMILIES]
    if generics:
        return generics[-1]

    for name in names:
        if name in FACE_TO_CATEGORY:
            return FACE_TO_CATEGORY[name]

    return FontCategory.UNCLASSIFIED


def _tokens(value):
    """ Yield (start, end) of whitespace separated tokens.

    Quoted strings and parentheses don't split.

    """

    pos = 0
    n = len(value)
    while pos < n:
        if value[pos].isspace():
            pos += 1
            continue
        start = pos
        depth = 0
        while pos < n and (depth or not value[pos].isspace()):
            c = value[pos]
            if c in '"\'':
                end = value.find(c, pos + 1)
                pos = n if end < 0 else end + 1
                continue
            if c == '(':
                depth += 1
            elif c == ')':
                depth = max(0, depth - 1)
            pos += 1
        yield start, pos


def split_font_shorthand(value):
    """ Split a font shorthand value into (prefix, family list).

    The prefix holds style, weight, size and line height. Returns
    None if the value has no family list, eg. a system font.

    """

    if value.strip().lower() in SYSTEM_FONTS | CSS_WIDE_KEYWORDS:
        return None

    tokens = list(_tokens(value))
    for i, (start, end) in enumerate(tokens):
        token = value[start:end]
        if not RE_FONT_SIZE.match(token):
            continue
        i += 1
        # line height, either glued to the size or separate
        if token.endswith('/'):
            i += 1
        elif i < len(tokens) and value[tokens[i][0]] == '/':
            if tokens[i][1] - tokens[i][0] == 1:
                i += 2
            else:
                i += 1
        if i >= len(tokens):
            return None
        family_start = tokens[i][0]
        return value[:family_start], value[family_start:].strip()
    return None


def font_stack_of(decl):
    """ Return the FontStack a Declaration sets, or None. """

    if decl.removed:
        return None
    if decl.name == 'font-family':
        value = decl.value.strip()
        if value.lower() in CSS_WIDE_KEYWORDS or value.lower().startswith('var('):
            return None
        return FontStack.parse(value)
    if decl.name == 'font':
        parts = split_font_shorthand(decl.value)
        if parts:
            return FontStack.parse(parts[1])
    return None


class StackInventory(object):
    """ All font stacks of a book, by category, with occurrence counts.

    Built once before any rewriting and read-only afterwards.

    """

    def __init__(self):
        self.stacks = collections.OrderedDict(
            (category, collections.Counter()) for category in CATEGORIES)
        self.category = {}


    def add(self, stack):
        category = self.category.get(stack.key)
        if category is None:
            category = classify_font_stack(stack)
            self.category[stack.key] = category
            if category == FontCategory.UNCLASSIFIED:
                debug('Unclassified font stack: %s' % stack.key)
        self.stacks[category][stack.key] += 1
        return category


    def category_of(self, stack):
        """ The category of a stack, classifying it if it was never seen. """

        return self.category.get(stack.key) or classify_font_stack(stack)


    def distinct(self, *categories):
        """ Return the distinct stacks in categories. """

        keys = set()
        for category in categories:
            keys.update(self.stacks[category])
        return keys


    def occurrences(self, *categories):
        return sum(sum(self.stacks[category].values()) for category in categories)


    def most_common(self, category):
        return self.stacks[category].most_common()


    def __len__(self):
        return len(self.category)


def build_inventory(stylesheets, inline_styles=()):
    """ Count the font stacks of all stylesheets and inline styles.

    stylesheets are Stylesheets, inline_styles lists of Declarations.
    @font-face rules don't count, their font-family names a face.

    """

    inventory = StackInventory()
    for sheet in stylesheets:
        for decl in sheet.iter_declarations():
            stack = font_stack_of(decl)
            if stack is not None:
                inventory.add(stack)
    for declarations in inline_styles:
        for decl in declarations:
            stack = font_stack_of(decl)
            if stack is not None:
                inventory.add(stack)

    for category in CATEGORIES:
        if inventory.stacks[category]:
            debug('%d distinct %s font stacks' % (len(inventory.stacks[category]), category.value))
    return inventory
