"""Keyscribe text output — xdotool/xclip with terminal detection."""

import subprocess
import time

from logging_utils import log_debug, log_info, log_error


# Known terminal emulator window classes
TERMINAL_CLASSES = {
    'gnome-terminal', 'gnome-terminal-server',
    'xterm', 'konsole', 'terminator', 'alacritty',
    'kitty', 'tilix', 'sakura', 'guake', 'yakuake',
    'st', 'urxvt', 'rxvt',
}

# Window class cache (avoids repeated xdotool subprocess calls)
_cached_window_class = None
_window_class_cache_time = 0
_WINDOW_CLASS_CACHE_TTL = 2.0


def _get_active_window_class():
    """Get the WM_CLASS of the currently focused window. Returns lowercase string or None."""
    try:
        result = subprocess.run(
            ['xdotool', 'getactivewindow', 'getwindowclassname'],
            capture_output=True,
            timeout=1.0,
            shell=False,
            text=True
        )
        if result.returncode == 0:
            return result.stdout.strip().lower()
    except subprocess.TimeoutExpired:
        log_error("[OUTPUT] xdotool window class detection timeout")
    except OSError as e:
        log_error(f"[OUTPUT] xdotool window class detection failed: {e}")
    return None


def _is_terminal(window_class):
    if window_class is None:
        return False
    return window_class in TERMINAL_CLASSES


def _get_cached_window_class():
    """Get window class with TTL caching to avoid repeated subprocess calls."""
    global _cached_window_class, _window_class_cache_time
    now = time.time()
    if now - _window_class_cache_time < _WINDOW_CLASS_CACHE_TTL:
        return _cached_window_class
    _cached_window_class = _get_active_window_class()
    _window_class_cache_time = now
    return _cached_window_class


def inject_text(text, config):
    """Deliver text to the focused window. Returns True on success."""
    if not text:
        return False

    if not config.get('auto_type', True):
        log_info(f"[OUTPUT] auto_type off, not typing {len(text)} chars")
        return False

    window_class = _get_cached_window_class()
    log_debug(f"[OUTPUT] Target window: {window_class}")

    if _is_terminal(window_class):
        log_info("[OUTPUT] Terminal detected, copying to clipboard (not typing)")
        return copy_to_clipboard(text)

    return type_text(text, config.get('typing_delay_ms', 0))


def type_text(text, delay_ms=0):
    """Type text via xdotool, delay_ms between keystrokes."""
    if not text:
        return False

    try:
        subprocess.run(
            ['xdotool', 'type', '--clearmodifiers', '--delay', str(int(delay_ms)), '--', text],
            timeout=5.0 + len(text) * delay_ms / 1000.0,
            shell=False,
            check=True
        )
        log_info(f"[OUTPUT] Typed {len(text)} chars")
        return True
    except subprocess.TimeoutExpired:
        log_error("[OUTPUT] xdotool type timeout")
    except subprocess.CalledProcessError as e:
        log_error(f"[OUTPUT] xdotool type failed: {e}")
    except OSError as e:
        log_error(f"[OUTPUT] xdotool not available: {e}")
    return False


def copy_to_clipboard(text):
    """Copy text to clipboard via xclip."""
    if not text:
        return False
    try:
        subprocess.run(
            ['xclip', '-selection', 'clipboard'],
            input=text.encode('utf-8'),
            timeout=2.0,
            shell=False,
            check=True
        )
        log_info(f"[OUTPUT] Copied {len(text)} chars to clipboard")
        return True
    except subprocess.TimeoutExpired:
        log_error("[OUTPUT] xclip timeout")
    except subprocess.CalledProcessError as e:
        log_error(f"[OUTPUT] xclip failed: {e}")
    except OSError as e:
        log_error(f"[OUTPUT] xclip not available: {e}")
    return False
