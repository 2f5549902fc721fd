#!/usr/bin/env python
# -*- coding: utf-8 -*-
'''
run this with
python -m unittest -v tests.test_policy
'''

import unittest

from unbook.CommonCode import UnbookConfigError
from unbook.FontPolicy import ReplacementDecision, ReplacementMode, decide, rewrite_declaration
from unbook.FontStacks import FontCategory, build_inventory
from unbook.parsers.CSSParser import Declaration, parse_stylesheet


def inventory_of(css):
    return build_inventory([parse_stylesheet(css)])


class TestReplacementMode(unittest.TestCase):

    def test_parse(self):
        self.assertEqual(ReplacementMode.parse('if-one'), ReplacementMode.IF_ONE)
        self.assertEqual(ReplacementMode.parse('IF_ONE'), ReplacementMode.IF_ONE)
        self.assertEqual(ReplacementMode.parse(ReplacementMode.NEVER), ReplacementMode.NEVER)
        self.assertRaises(UnbookConfigError, ReplacementMode.parse, 'sometimes')

    def test_wants_replacement(self):
        self.assertTrue(ReplacementMode.ALWAYS.wants_replacement(set()))
        self.assertTrue(ReplacementMode.IF_ONE.wants_replacement({'Georgia'}))
        self.assertFalse(ReplacementMode.IF_ONE.wants_replacement(set()))
        self.assertFalse(ReplacementMode.IF_ONE.wants_replacement({'Georgia', 'Times'}))
        self.assertFalse(ReplacementMode.NEVER.wants_replacement({'Georgia'}))


class TestDecide(unittest.TestCase):

    def test_one_stack(self):
        inventory = inventory_of('p { font-family: Georgia, serif } h1 { font-family: Georgia, serif }')
        decision = decide(inventory, 'if-one', 'if-one', 'sans-serif', 'monospace')
        self.assertEqual(decision.replacement_for(FontCategory.SERIF), 'sans-serif')
        self.assertEqual(decision.replacement_for(FontCategory.SANS_SERIF), 'sans-serif')
        # no monospace stacks at all
        self.assertFalse(decision.replaces(FontCategory.MONOSPACE))
        self.assertFalse(decision.replaces(FontCategory.UNCLASSIFIED))

    def test_two_stacks(self):
        inventory = inventory_of('p { font-family: Georgia, serif } h1 { font-family: Times, serif }')
        decision = decide(inventory, 'if-one', 'if-one', 'sans-serif', 'monospace')
        self.assertFalse(decision.replaces(FontCategory.SERIF))
        self.assertEqual(str(decision), 'replace no font stacks')

        decision = decide(inventory, 'always', 'never', 'Charter', 'monospace')
        self.assertEqual(decision.replacement_for(FontCategory.SERIF), 'Charter')
        self.assertFalse(decision.replaces(FontCategory.MONOSPACE))

    def test_serif_and_sans_count_together(self):
        inventory = inventory_of('p { font-family: Georgia, serif } h1 { font-family: Arial }')
        decision = decide(inventory, 'if-one', 'if-one', 'sans-serif', 'monospace')
        self.assertFalse(decision.replaces(FontCategory.SERIF))
        self.assertFalse(decision.replaces(FontCategory.SANS_SERIF))

    def test_monospace_on_its_own(self):
        inventory = inventory_of(
            'p { font-family: Georgia } h1 { font-family: Arial } code { font-family: Consolas }')
        decision = decide(inventory, 'if-one', 'if-one', 'sans-serif', 'ui-monospace')
        self.assertFalse(decision.replaces(FontCategory.SERIF))
        self.assertEqual(decision.replacement_for(FontCategory.MONOSPACE), 'ui-monospace')

    def test_never(self):
        inventory = inventory_of('p { font-family: Georgia, serif }')
        decision = decide(inventory, 'never', 'never', 'sans-serif', 'monospace')
        self.assertEqual(decision.replacements, {})


class TestRewrite(unittest.TestCase):

    def setUp(self):
        self.decision = ReplacementDecision({
            FontCategory.SERIF: 'sans-serif',
            FontCategory.SANS_SERIF: 'sans-serif',
        })

    def test_font_family(self):
        decl = Declaration('font-family', 'Georgia, serif')
        self.assertTrue(rewrite_declaration(decl, self.decision))
        self.assertEqual(decl.value, 'sans-serif')
        self.assertEqual(decl.serialize(),
                         'font-family: sans-serif; /* was font-family: Georgia, serif */ /* unbook */')

    def test_font_shorthand(self):
        decl = Declaration('font', 'italic 1.2em/1.4 Georgia, serif')
        self.assertTrue(rewrite_declaration(decl, self.decision, annotate=False))
        self.assertEqual(decl.value, 'italic 1.2em/1.4 sans-serif')
        self.assertTrue(decl.note is None)

    def test_left_alone(self):
        for decl in (Declaration('font-family', 'Consolas, monospace'),
                     Declaration('font-family', 'MyCustomFont'),
                     Declaration('font-family', 'inherit'),
                     Declaration('font', 'caption'),
                     Declaration('color', 'red')):
            value = decl.value
            self.assertFalse(rewrite_declaration(decl, self.decision))
            self.assertEqual(decl.value, value)

    def test_unclassified_never_replaced(self):
        inventory = inventory_of(
            'p { font-family: MyCustomFont } h1 { font-family: "Comic Sans MS", cursive }')
        for decision in (
                decide(inventory, 'always', 'always', 'sans-serif', 'monospace'),
                ReplacementDecision({category: 'sans-serif' for category in FontCategory})):
            self.assertFalse(decision.replaces(FontCategory.UNCLASSIFIED))
            self.assertFalse(decision.replaces(FontCategory.CURSIVE))
            for decl in (Declaration('font-family', 'MyCustomFont'),
                         Declaration('font-family', '"Comic Sans MS", cursive'),
                         Declaration('font', 'bold 1em MyCustomFont')):
                value = decl.value
                self.assertFalse(rewrite_declaration(decl, decision))
                self.assertEqual(decl.value, value)
