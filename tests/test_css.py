#!/usr/bin/env python
# -*- coding: utf-8 -*-
'''
run this with
python -m unittest -v tests.test_css
'''

import unittest

from unbook.parsers import CSSParser
from unbook.parsers.CSSParser import (
    Declaration, FontFaceRule, GroupRule, ImportRule, OpaqueRule, Ruleset,
    iter_urls, lowercase_selector, parse_color, parse_style_attribute,
    parse_stylesheet, replace_urls, serialize_style_attribute, split_chunks)


class TestSplitter(unittest.TestCase):

    def test_chunks(self):
        css = '@charset "utf-8";\np { color: red }\n@media print { p { color: black } }\n'
        chunks = list(split_chunks(css))
        self.assertEqual(len(chunks), 3)
        self.assertEqual(chunks[0][0], '@charset "utf-8"')
        self.assertTrue(chunks[0][1] is None)
        self.assertEqual(chunks[1][0], 'p')
        self.assertEqual(chunks[1][1].strip(), 'color: red')
        self.assertEqual(chunks[2][0], '@media print')
        self.assertEqual(chunks[2][1].strip(), 'p { color: black }')

    def test_junk(self):
        css = '<!-- /* comment */ } p { color: red } -->'
        chunks = list(split_chunks(css))
        self.assertEqual(len(chunks), 1)
        self.assertEqual(chunks[0][0], 'p')

    def test_braces_in_strings(self):
        css = 'p::before { content: "}" } h1 { color: blue }'
        chunks = list(split_chunks(css))
        self.assertEqual(len(chunks), 2)
        self.assertEqual(chunks[1][0], 'h1')

    def test_unterminated(self):
        chunks = list(split_chunks('h1 { color: blue } p { color: red'))
        self.assertEqual(len(chunks), 2)
        self.assertTrue(chunks[1][1] is None)
        self.assertEqual(chunks[1][2], 'p { color: red')


class TestStylesheet(unittest.TestCase):

    def test_rules(self):
        sheet = parse_stylesheet('''
@charset "utf-8";
@import url("fonts.css") screen;
@import 'more.css';
@font-face { font-family: Foo; src: url(foo.woff) }
h1, h2 { font-family: Georgia, serif }
@media print {
    p { color: black }
}
@page { margin: 0 }
''', 'OEBPS/style.css')

        self.assertEqual(sheet.path, 'OEBPS/style.css')
        kinds = [type(rule) for rule in sheet.rules]
        self.assertEqual(kinds, [ImportRule, ImportRule, FontFaceRule, Ruleset,
                                 GroupRule, OpaqueRule])

        imports = sheet.imports()
        self.assertEqual(imports[0].href, 'fonts.css')
        self.assertEqual(imports[0].media, 'screen')
        self.assertEqual(imports[1].href, 'more.css')
        self.assertEqual(imports[1].media, '')

        self.assertEqual(sheet.rules[3].selectors, ['h1', 'h2'])
        self.assertEqual(sheet.rules[4].prelude, '@media print')
        self.assertTrue(sheet.rules[5].text.startswith('@page'))

        sheet.remove_imports()
        self.assertFalse(sheet.imports())
        self.assertEqual(len(sheet.rules), 4)

    def test_iter_declarations(self):
        sheet = parse_stylesheet(
            '@font-face { font-family: Foo; src: url(foo.woff) }\n'
            '@media screen { p { font-size: 0.8em } }\n'
            'div { line-height: 1.2 }\n')
        names = [decl.name for decl in sheet.iter_declarations()]
        self.assertEqual(names, ['font-size', 'line-height'])
        names = [decl.name for decl in sheet.iter_declarations(font_face=True)]
        self.assertTrue('src' in names)
        self.assertTrue('font-family' in names)

    def test_duplicates_and_priority(self):
        sheet = parse_stylesheet('p { color: red; color: blue; margin: 0 !important }')
        decls = sheet.rules[0].declarations
        self.assertEqual([d.name for d in decls], ['color', 'color', 'margin'])
        self.assertTrue(decls[2].important)
        self.assertFalse(decls[0].important)

    def test_bad_rule_keeps_the_rest(self):
        sheet = parse_stylesheet('123 { color: red }\np { font-size: 2em }')
        self.assertEqual(len(sheet.rules), 2)
        self.assertTrue(isinstance(sheet.rules[1], Ruleset))
        self.assertEqual(sheet.rules[1].declarations[0].value, '2em')

    def test_unterminated_is_kept(self):
        sheet = parse_stylesheet('p { color: red')
        self.assertEqual(len(sheet.rules), 1)
        self.assertTrue(isinstance(sheet.rules[0], OpaqueRule))
        self.assertEqual(sheet.serialize(), 'p { color: red\n')

    def test_serialize(self):
        rule = Ruleset(['p'], [Declaration('color', 'red')])
        self.assertEqual(rule.serialize(), 'p {\n    color: red;\n}\n')

        removed = Declaration('text-align', 'justify')
        removed.removed = True
        self.assertEqual(removed.serialize(), '/* was text-align: justify; */ /* unbook */')

        noted = Declaration('font-size', 'max(0.8em, var(--min-font-size))', True)
        noted.note = CSSParser.UNBOOK_NOTE
        self.assertEqual(noted.serialize(),
                         'font-size: max(0.8em, var(--min-font-size)) !important; /* unbook */')

        group = GroupRule('@media print', [rule])
        self.assertEqual(group.serialize(),
                         '@media print {\n    p {\n        color: red;\n    }\n}\n')

    def test_parser_charset(self):
        data = '@charset "iso-8859-1";\np::before { content: "\xe9" }'.encode('iso-8859-1')
        parser = CSSParser.Parser('style.css', data)
        self.assertEqual(parser.get_charset_from_meta(), 'iso-8859-1')
        sheet = parser.parse()
        self.assertEqual(len(sheet.rules), 1)
        self.assertTrue('\xe9' in sheet.serialize())


class TestHelpers(unittest.TestCase):

    def test_lowercase_selector(self):
        self.assertEqual(lowercase_selector('DIV.Chapter P'), 'div.Chapter p')
        self.assertEqual(lowercase_selector('.Para'), '.Para')

    def test_style_attribute(self):
        decls = parse_style_attribute('font-family: Georgia, serif; font-size: 0.5em')
        self.assertEqual([d.name for d in decls], ['font-family', 'font-size'])
        decls[1].removed = True
        self.assertEqual(serialize_style_attribute(decls), 'font-family: Georgia, serif')

    def test_urls(self):
        value = 'url("a.png") no-repeat, url(b.png)'
        self.assertEqual(list(iter_urls(value)), ['a.png', 'b.png'])
        new = replace_urls(value, lambda url: 'data:x' if url == 'a.png' else None)
        self.assertEqual(new, 'url(data:x) no-repeat, url(b.png)')
        self.assertEqual(replace_urls('red', lambda url: 'nope'), 'red')

    def test_parse_color(self):
        self.assertEqual(parse_color('#ffffff'), (255, 255, 255))
        self.assertEqual(parse_color('#e9e9e9'), (233, 233, 233))
        self.assertEqual(parse_color('rgb(0, 128, 255)'), (0, 128, 255))
        self.assertEqual(parse_color('red'), (255, 0, 0))
        self.assertTrue(parse_color('unset') is None)
        self.assertTrue(parse_color('12px') is None)
