#!/usr/bin/env python
# -*- coding: utf-8 -*-
'''
run this with
python -m unittest -v tests.test_stylefixer
'''

import unittest

from unbook.CommonCode import Options
from unbook.FontPolicy import ReplacementDecision
from unbook.FontStacks import FontCategory
from unbook.StyleFixer import StyleFixer, floor_value, is_paragraph_rule
from unbook.parsers.CSSParser import (
    Declaration, parse_style_attribute, parse_stylesheet, serialize_style_attribute)


def declarations(sheet, index=0):
    return {decl.name: decl for decl in list(sheet.iter_rules())[index].declarations}


class TestStyleFixer(unittest.TestCase):

    def setUp(self):
        self.fixer = StyleFixer(Options(), ReplacementDecision())

    def test_floors(self):
        sheet = parse_stylesheet('p { font-size: 0.8em; line-height: 1.2; color: red }')
        self.fixer.fix_stylesheet(sheet)
        decls = declarations(sheet)
        self.assertEqual(decls['font-size'].value, 'max(0.8em, var(--min-font-size))')
        self.assertEqual(decls['line-height'].value, 'max(1.2, var(--min-line-height))')
        self.assertEqual(decls['color'].value, 'red')
        self.assertTrue('/* unbook */' in sheet.serialize())

    def test_no_floor_for_keywords(self):
        for value in ('inherit', 'small', 'normal'):
            decl = Declaration('font-size', value)
            self.assertFalse(floor_value(decl))
            self.assertEqual(decl.value, value)
        decl = Declaration('font-size', 'max(1em, var(--min-font-size))')
        self.assertFalse(floor_value(decl))

    def test_justify(self):
        sheet = parse_stylesheet('p { text-align: justify } h1 { text-align: center }')
        self.fixer.fix_stylesheet(sheet)
        self.assertTrue(declarations(sheet, 0)['text-align'].removed)
        self.assertFalse(declarations(sheet, 1)['text-align'].removed)
        self.assertTrue('/* was text-align: justify; */' in sheet.serialize())

    def test_paragraph_margins(self):
        sheet = parse_stylesheet(
            '.calibre1 { text-indent: 1em; margin-top: 0.2em; margin-bottom: 3px }\n'
            'h1 { margin-top: 0.2em }')
        self.assertTrue(is_paragraph_rule(list(sheet.iter_rules())[0]))
        self.fixer.fix_stylesheet(sheet)
        decls = declarations(sheet, 0)
        self.assertEqual(decls['margin-top'].value, '0')
        self.assertEqual(decls['margin-bottom'].value, '0')
        self.assertEqual(declarations(sheet, 1)['margin-top'].value, '0.2em')

    def test_page_background(self):
        sheet = parse_stylesheet('.calibre { background-color: #ffffff }\n'
                                 '.calibre { background-color: #000000 }\n'
                                 'div { background-color: #ffffff }')
        self.fixer.fix_stylesheet(sheet)
        self.assertEqual(declarations(sheet, 0)['background-color'].value, 'inherit')
        self.assertNotEqual(declarations(sheet, 1)['background-color'].value, 'inherit')
        self.assertNotEqual(declarations(sheet, 2)['background-color'].value, 'inherit')

    def test_unset_inside_bgcolor(self):
        fixer = StyleFixer(Options(inside_bgcolor='unset'), ReplacementDecision())
        sheet = parse_stylesheet('.calibre { background-color: #ffffff }')
        fixer.fix_stylesheet(sheet)
        self.assertNotEqual(declarations(sheet)['background-color'].value, 'inherit')

    def test_superscript(self):
        sheet = parse_stylesheet('.sup { vertical-align: super }')
        self.fixer.fix_stylesheet(sheet)
        decls = declarations(sheet)
        self.assertEqual(decls['vertical-align'].value, 'baseline')
        self.assertEqual(decls['position'].value, 'relative')
        self.assertEqual(decls['top'].value, '-0.4em')

    def test_fonts_in_media_rules(self):
        decision = ReplacementDecision({FontCategory.SERIF: 'sans-serif'})
        fixer = StyleFixer(Options(), decision)
        sheet = parse_stylesheet('@media screen { p { font-family: Georgia, serif } }')
        fixer.fix_stylesheet(sheet)
        decl = list(sheet.iter_declarations())[0]
        self.assertEqual(decl.value, 'sans-serif')
        self.assertTrue('/* was font-family: Georgia, serif */' in sheet.serialize())
        self.assertEqual(fixer.counts['font-family'], 1)

    def test_style_attribute(self):
        decision = ReplacementDecision({FontCategory.SERIF: 'sans-serif'})
        fixer = StyleFixer(Options(), decision)
        decls = parse_style_attribute('font-family: Georgia; font-size: 0.5em; color: red')
        self.assertTrue(fixer.fix_style_attribute(decls))
        style = serialize_style_attribute(decls)
        self.assertTrue('font-family: sans-serif' in style)
        self.assertTrue('max(0.5em, var(--min-font-size))' in style)
        self.assertFalse('/*' in style)

        decls = parse_style_attribute('color: red')
        self.assertFalse(fixer.fix_style_attribute(decls))
