"""Tests for hotkey parsing and press/release tracking — no keyboard listener is started."""

import unittest
from types import SimpleNamespace

from hotkey import HotkeyEvent, HotkeyManager, key_name, parse_hotkey


class TestParseHotkey(unittest.TestCase):

    def test_modifiers_and_key(self):
        self.assertEqual(parse_hotkey('ctrl+shift+space'), frozenset({'ctrl', 'shift', 'space'}))

    def test_aliases_and_case(self):
        self.assertEqual(parse_hotkey('Control + Win + F9'), frozenset({'ctrl', 'super', 'f9'}))
        self.assertEqual(parse_hotkey('alt+Return'), frozenset({'alt', 'enter'}))

    def test_single_character(self):
        self.assertEqual(parse_hotkey('ctrl+alt+V'), frozenset({'ctrl', 'alt', 'v'}))

    def test_rejects_malformed(self):
        for bad in ('', 'ctrl+', 'ctrl++v', 'ctrl+a+b', 'ctrl+banana'):
            with self.subTest(combination=bad):
                with self.assertRaises(ValueError):
                    parse_hotkey(bad)


class TestKeyName(unittest.TestCase):

    def test_character_key(self):
        self.assertEqual(key_name(SimpleNamespace(char='V')), 'v')

    def test_special_key(self):
        self.assertEqual(key_name(SimpleNamespace(char=None, name='ctrl_l')), 'ctrl')
        self.assertEqual(key_name(SimpleNamespace(char=None, name='space')), 'space')

    def test_unknown_key(self):
        self.assertIsNone(key_name(SimpleNamespace(char=None, name=None)))


class TestHotkeyManager(unittest.TestCase):

    def setUp(self):
        self.events = []
        self.manager = HotkeyManager()
        self.manager._emit = self.events.append
        self.hotkey_id = self.manager.register('ctrl+alt+v')

    def test_press_fires_once_when_combination_held(self):
        self.manager.handle_key('ctrl', True)
        self.manager.handle_key('alt', True)
        self.assertEqual(self.events, [])

        self.manager.handle_key('v', True)
        self.manager.handle_key('v', True)  # auto-repeat

        self.assertEqual(self.events, [HotkeyEvent(self.hotkey_id, 'ctrl+alt+v', True)])

    def test_release_fires_when_any_key_lifts(self):
        for name in ('ctrl', 'alt', 'v'):
            self.manager.handle_key(name, True)
        self.manager.handle_key('alt', False)
        self.manager.handle_key('v', False)

        self.assertEqual(self.events, [
            HotkeyEvent(self.hotkey_id, 'ctrl+alt+v', True),
            HotkeyEvent(self.hotkey_id, 'ctrl+alt+v', False),
        ])

    def test_press_again_after_release(self):
        for _ in range(2):
            for name in ('ctrl', 'alt', 'v'):
                self.manager.handle_key(name, True)
            for name in ('v', 'alt', 'ctrl'):
                self.manager.handle_key(name, False)
        presses = [e for e in self.events if e.pressed]
        self.assertEqual(len(presses), 2)

    def test_ids_are_sequential(self):
        second = self.manager.register('f9')
        self.assertEqual(second, self.hotkey_id + 1)

    def test_shifted_symbol_release_clears_held_key(self):
        """'!' pressed with shift and released as '1' maps to one held key."""
        unshifted = {'!': '1'}
        self.manager._listener = SimpleNamespace(
            canonical=lambda key: SimpleNamespace(char=unshifted.get(key.char, key.char))
        )
        self.manager._on_press(SimpleNamespace(char='!'))
        self.manager._on_release(SimpleNamespace(char='1'))
        self.assertEqual(self.manager._pressed, set())
        self.manager._listener = None

    def test_stop_without_start(self):
        self.manager.stop()
        self.manager.stop()


if __name__ == '__main__':
    unittest.main()
