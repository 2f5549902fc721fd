#!/usr/bin/env python
#  -*- mode: python; indent-tabs-mode: nil; -*- coding: UTF8 -*-

"""

CSSParser.py

Copyright 2024 by the unbook contributors

Distributable under the GNU General Public License Version 3 or newer.

Parse css into a list of rules and declarations.

Book css is often broken. The sheet is first split into top-level
chunks, then every style rule is handed to cssutils on its own. A
chunk cssutils cannot make sense of is kept verbatim as an opaque
rule, so one bad rule never costs the rest of the sheet.

"""

import logging
import re
import xml.dom

import cssutils

from libgutenberg.Logger import debug

from unbook.parsers import ParserBase, REB_CSS_CHARSET

RE_ELEMENT = re.compile(r'((?:^|\s)[a-z0-9]+)', re.I)

RE_AT_KEYWORD = re.compile(r'@(-?[a-z][-a-z0-9]*)', re.I)

RE_IMPORT = re.compile(r'''@import\s+(?:url\(\s*(?:"([^"]*)"|'([^']*)'|([^)\s]*))\s*\)|"([^"]*)"|'([^']*)')\s*([^;]*)''', re.I)

RE_URL = re.compile(r'''url\(\s*(?:"((?:[^"\\]|\\.)*)"|'((?:[^'\\]|\\.)*)'|([^)\s'"]*))\s*\)''', re.I)

# at-rules holding style rules
GROUP_RULES = {'media', 'supports', 'document', '-moz-document', 'layer', 'container', 'scope'}

UNBOOK_NOTE = '/* unbook */'

_parser = None

def cssparser():
    """ Return the shared cssutils parser. """

    global _parser
    if _parser is None:
        cssutils.log.setLog(logging.getLogger('cssutils'))
        # logging.DEBUG is way too verbose
        cssutils.log.setLevel(max(cssutils.log.getEffectiveLevel(), logging.INFO))
        _parser = cssutils.CSSParser(parseComments=False, validate=False)
    return _parser


class Declaration(object):
    """ One property: value pair. """

    def __init__(self, name, value, important=False):
        self.name = name
        self.value = value
        self.important = important
        # comment appended after the declaration
        self.note = None
        # removed declarations serialize as a comment
        self.removed = False


    def text(self):
        if self.important:
            return '%s: %s !important' % (self.name, self.value)
        return '%s: %s' % (self.name, self.value)


    def serialize(self):
        if self.removed:
            return '/* was %s; */ %s' % (self.text(), UNBOOK_NOTE)
        if self.note:
            return '%s; %s' % (self.text(), self.note)
        return self.text() + ';'


    def __repr__(self):
        return 'Declaration(%r, %r, %r)' % (self.name, self.value, self.important)


class Rule(object):
    """ Base class for all rules in a Stylesheet. """

    declarations = ()

    def serialize(self, indent=''):
        raise NotImplementedError


def _serialize_block(head, declarations, indent):
    lines = ['%s%s {\n' % (indent, head)]
    for decl in declarations:
        lines.append('%s    %s\n' % (indent, decl.serialize()))
    lines.append('%s}\n' % indent)
    return ''.join(lines)


class Ruleset(Rule):
    """ A style rule: selectors and declarations. """

    def __init__(self, selectors, declarations):
        self.selectors = selectors
        self.declarations = declarations

    @property
    def selector_text(self):
        return ', '.join(self.selectors)

    def serialize(self, indent=''):
        return _serialize_block(self.selector_text, self.declarations, indent)


class FontFaceRule(Rule):
    """ A @font-face rule. Its font-family names a face, it is not a stack. """

    def __init__(self, declarations):
        self.declarations = declarations

    def serialize(self, indent=''):
        return _serialize_block('@font-face', self.declarations, indent)


class GroupRule(Rule):
    """ @media, @supports and friends. """

    def __init__(self, prelude, rules):
        self.prelude = prelude
        self.rules = rules

    def serialize(self, indent=''):
        lines = ['%s%s {\n' % (indent, self.prelude)]
        for rule in self.rules:
            lines.append(rule.serialize(indent + '    '))
        lines.append('%s}\n' % indent)
        return ''.join(lines)


class ImportRule(Rule):
    """ An @import. The loader replaces it with the imported sheet. """

    def __init__(self, href, media, text):
        self.href = href
        self.media = media
        self.text = text

    def serialize(self, indent=''):
        return '%s%s\n' % (indent, self.text)


class OpaqueRule(Rule):
    """ Anything we do not understand, kept as it was. """

    def __init__(self, text):
        self.text = text.strip()

    def serialize(self, indent=''):
        return '%s%s\n' % (indent, self.text)


class Stylesheet(object):
    """ The parsed rules of one css source. """

    def __init__(self, path, rules):
        self.path = path
        self.rules = rules


    def iter_rules(self, rules=None):
        """ Iterate all rules, descending into group rules. """

        for rule in self.rules if rules is None else rules:
            if isinstance(rule, GroupRule):
                for r in self.iter_rules(rule.rules):
                    yield r
            else:
                yield rule


    def iter_declarations(self, font_face=False):
        """ Iterate the declarations of all style rules (and font faces). """

        for rule in self.iter_rules():
            if isinstance(rule, Ruleset) or (font_face and isinstance(rule, FontFaceRule)):
                for decl in rule.declarations:
                    yield decl


    def imports(self):
        return [rule for rule in self.rules if isinstance(rule, ImportRule)]


    def remove_imports(self):
        self.rules = [rule for rule in self.rules if not isinstance(rule, ImportRule)]


    def serialize(self):
        return ''.join(rule.serialize() for rule in self.rules)


def _skip_string(text, pos):
    """ Return the position after the string starting at pos. """

    quote = text[pos]
    pos += 1
    n = len(text)
    while pos < n:
        c = text[pos]
        if c == '\\':
            pos += 2
            continue
        if c == quote or c == '\n':
            return pos + 1
        pos += 1
    return n


def _scan(text, pos, stops):
    """ Find the first char in stops outside of strings, comments and blocks.

    Returns -1 if there is none.

    """

    depth = 0
    n = len(text)
    while pos < n:
        c = text[pos]
        if c in '"\'':
            pos = _skip_string(text, pos)
            continue
        if c == '/' and text.startswith('/*', pos):
            end = text.find('*/', pos + 2)
            pos = n if end < 0 else end + 2
            continue
        if depth == 0 and c in stops:
            return pos
        if c == '{':
            depth += 1
        elif c == '}':
            depth -= 1
            if depth < 0:
                return -1
        pos += 1
    return -1


def _skip_junk(text, pos):
    """ Skip whitespace, comments and html comment tokens. """

    n = len(text)
    while pos < n:
        if text[pos].isspace():
            pos += 1
        elif text.startswith('/*', pos):
            end = text.find('*/', pos + 2)
            pos = n if end < 0 else end + 2
        elif text.startswith('<!--', pos):
            pos += 4
        elif text.startswith('-->', pos):
            pos += 3
        else:
            break
    return pos


def split_chunks(text):
    """ Split css into top-level chunks.

    Yields tuples (prelude, body, raw). body is None for statements
    like @import. A chunk that never gets closed extends to the end of
    the text and is yielded with body None.

    """

    pos = _skip_junk(text, 0)
    n = len(text)
    while pos < n:
        if text[pos] == '}':
            # stray closing brace
            debug('Skipping stray } in css.')
            pos = _skip_junk(text, pos + 1)
            continue

        stop = _scan(text, pos, '{;' if text[pos] == '@' else '{')
        if stop < 0:
            yield text[pos:].strip(), None, text[pos:]
            return
        if text[stop] == ';':
            yield text[pos:stop].strip(), None, text[pos:stop + 1]
            pos = _skip_junk(text, stop + 1)
            continue

        end = _scan(text, stop + 1, '}')
        if end < 0:
            yield text[pos:].strip(), None, text[pos:]
            return
        yield text[pos:stop].strip(), text[stop + 1:end], text[pos:end + 1]
        pos = _skip_junk(text, end + 1)


def declarations_from_style(style):
    """ Convert a cssutils CSSStyleDeclaration to a list of Declarations. """

    return [Declaration(prop.name, prop.value, prop.priority == 'important')
            for prop in style.getProperties(all=True)]


def parse_declarations(text):
    """ Parse the inside of a declaration block. """

    return declarations_from_style(cssparser().parseStyle(text))


def lowercase_selector(selector):
    """ make selectors lowercase to match html tags """
    return RE_ELEMENT.sub(lambda m: m.group(1).lower(), selector)


class Parser(ParserBase):
    """ Parse an external css file. """

    def get_charset_from_meta(self):
        m = REB_CSS_CHARSET.search(self.bytes_content())
        if m:
            return m.group(1).decode('ascii', 'replace')
        return None


    def parse(self):
        return parse_stylesheet(self.unicode_content(), self.path)


def parse_stylesheet(text, path=None):
    """ Parse css text into a Stylesheet. Never fails. """

    rules = _parse_rules(text, path)
    debug('Parsed %d top-level css rules from %s' % (len(rules), path or 'inline style'))
    return Stylesheet(path, rules)


def _parse_rules(text, path):
    rules = []
    for prelude, body, raw in split_chunks(text):
        m = RE_AT_KEYWORD.match(prelude)
        if m:
            rule = _parse_at_rule(m.group(1).lower(), prelude, body, raw, path)
        elif body is None:
            debug('Keeping unterminated css in %s: %s' % (path, raw.strip()[:60]))
            rule = OpaqueRule(raw)
        else:
            rule = _parse_ruleset(raw)
        if rule is not None:
            rules.append(rule)
    return rules


def _parse_at_rule(keyword, prelude, body, raw, path):
    if keyword == 'charset':
        return None
    if keyword == 'import':
        m = RE_IMPORT.match(prelude)
        if m is None:
            return OpaqueRule(raw)
        href = next(g for g in m.groups()[:5] if g is not None)
        return ImportRule(href, m.group(6).strip(), prelude + ';')
    if body is None:
        return OpaqueRule(raw)
    if keyword == 'font-face':
        return FontFaceRule(parse_declarations(body))
    if keyword in GROUP_RULES:
        return GroupRule(' '.join(prelude.split()), _parse_rules(body, path))
    return OpaqueRule(raw)


def _parse_ruleset(raw):
    sheet = cssparser().parseString(raw)
    rules = list(sheet.cssRules)
    if len(rules) != 1 or rules[0].type != rules[0].STYLE_RULE:
        debug('Keeping unparseable css rule: %s' % raw.strip()[:60])
        return OpaqueRule(raw)
    rule = rules[0]
    selectors = [lowercase_selector(sel.selectorText) for sel in rule.selectorList]
    if not selectors:
        return OpaqueRule(raw)
    return Ruleset(selectors, declarations_from_style(rule.style))


def parse_style_attribute(text):
    """ Parse the value of a style attribute into Declarations. """

    return parse_declarations(text)


def serialize_style_attribute(declarations):
    return '; '.join(decl.text() for decl in declarations if not decl.removed)


def replace_urls(value, f):
    """ Call f on every url() in value and substitute the result.

    f returns the new url or None to leave it alone.

    """

    def sub(m):
        url = next(g for g in m.groups() if g is not None)
        new = f(url)
        if new is None:
            return m.group(0)
        return 'url(%s)' % new

    if 'url(' not in value.lower():
        return value
    return RE_URL.sub(sub, value)


def iter_urls(value):
    for m in RE_URL.finditer(value):
        yield next(g for g in m.groups() if g is not None)


def parse_color(text):
    """ Return the (r, g, b) of a css color, or None. """

    try:
        color = cssutils.css.ColorValue(text)
    except xml.dom.DOMException:
        return None
    if not color.wellformed:
        return None
    return color.red, color.green, color.blue
