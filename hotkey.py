"""Keyscribe global hotkey — combination parsing and press/release events."""

import threading
from dataclasses import dataclass

from logging_utils import log_debug, log_info, log_error

MODIFIER_ALIASES = {
    'ctrl': 'ctrl', 'cmd': 'ctrl', 'control': 'ctrl',
    'shift': 'shift',
    'alt': 'alt',
    'super': 'super', 'win': 'super', 'meta': 'super',
}

SPECIAL_KEYS = {
    'space': 'space',
    'enter': 'enter', 'return': 'enter',
    'tab': 'tab',
    'backspace': 'backspace',
    'delete': 'delete',
    'escape': 'esc', 'esc': 'esc',
    'up': 'up', 'down': 'down', 'left': 'left', 'right': 'right',
}
SPECIAL_KEYS.update({f'f{n}': f'f{n}' for n in range(1, 13)})

# pynput Key.name -> canonical name
_PYNPUT_NAMES = {
    'ctrl_l': 'ctrl', 'ctrl_r': 'ctrl',
    'shift_l': 'shift', 'shift_r': 'shift',
    'alt_l': 'alt', 'alt_r': 'alt', 'alt_gr': 'alt',
    'cmd': 'super', 'cmd_l': 'super', 'cmd_r': 'super',
}


@dataclass(frozen=True)
class HotkeyEvent:
    id: int
    hotkey: str
    pressed: bool


def _parse_key(part):
    if len(part) == 1 and part.isalnum():
        return part
    if part in SPECIAL_KEYS:
        return SPECIAL_KEYS[part]
    raise ValueError(f"Unknown key: {part}")


def parse_hotkey(combination):
    """'ctrl+shift+space' -> frozenset({'ctrl', 'shift', 'space'})."""
    parts = [p.strip().lower() for p in combination.split('+')]
    if not combination.strip() or any(not p for p in parts):
        raise ValueError(f"Invalid hotkey string: '{combination}'")

    keys = set()
    key = None
    for part in parts:
        if part in MODIFIER_ALIASES:
            keys.add(MODIFIER_ALIASES[part])
        else:
            if key is not None:
                raise ValueError(f"Multiple keys specified in hotkey: {combination}")
            key = _parse_key(part)
            keys.add(key)
    return frozenset(keys)


def key_name(key):
    """Canonical name for a pynput Key/KeyCode, or None."""
    char = getattr(key, 'char', None)
    if char:
        return char.lower()
    name = getattr(key, 'name', None)
    if name:
        return _PYNPUT_NAMES.get(name, name)
    return None


class HotkeyManager:
    """
    Registers combinations and reports press/release per registration id.

    A press event fires once when every key of a combination is down; a
    release event fires when one of its keys goes up afterwards.
    """

    def __init__(self):
        self.hotkeys = {}      # id -> (combination, keyset)
        self._next_id = 1
        self._pressed = set()
        self._active = set()   # ids whose combination is currently held
        self._lock = threading.Lock()
        self._emit = None
        self._listener = None

    def register(self, combination):
        keys = parse_hotkey(combination)
        hotkey_id = self._next_id
        self._next_id += 1
        self.hotkeys[hotkey_id] = (combination, keys)
        log_info(f"[HOTKEY] Registered: {combination} (ID: {hotkey_id})")
        return hotkey_id

    def start(self, emit):
        """Start the listener thread; emit(HotkeyEvent) is called from that thread."""
        from pynput import keyboard

        self._emit = emit
        self._listener = keyboard.Listener(on_press=self._on_press, on_release=self._on_release)
        self._listener.daemon = True
        self._listener.start()
        log_info("[HOTKEY] Listener started")

    def stop(self):
        """Idempotent, no-throw."""
        if self._listener is None:
            return
        try:
            self._listener.stop()
        except Exception as e:
            log_error(f"[HOTKEY] Listener stop failed: {e}")
        self._listener = None
        log_info("[HOTKEY] Listener stopped")

    def _canonical_name(self, key):
        # Shift and other modifiers change KeyCode.char between press and release
        listener = self._listener
        if listener is not None:
            key = listener.canonical(key)
        return key_name(key)

    def _on_press(self, key):
        self.handle_key(self._canonical_name(key), pressed=True)

    def _on_release(self, key):
        self.handle_key(self._canonical_name(key), pressed=False)

    def handle_key(self, name, pressed):
        """Update held keys and emit press/release events for matching combinations."""
        if name is None:
            return
        events = []
        with self._lock:
            if pressed:
                self._pressed.add(name)
                for hotkey_id, (combination, keys) in self.hotkeys.items():
                    if hotkey_id not in self._active and keys <= self._pressed:
                        self._active.add(hotkey_id)
                        events.append(HotkeyEvent(hotkey_id, combination, True))
            else:
                self._pressed.discard(name)
                for hotkey_id, (combination, keys) in self.hotkeys.items():
                    if hotkey_id in self._active and name in keys:
                        self._active.discard(hotkey_id)
                        events.append(HotkeyEvent(hotkey_id, combination, False))

        for event in events:
            log_debug(f"[HOTKEY] {'Pressed' if event.pressed else 'Released'}: "
                      f"{event.hotkey} (ID: {event.id})")
            if self._emit is not None:
                self._emit(event)
