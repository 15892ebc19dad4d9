"""Keyscribe logging utilities."""

import sys
from datetime import datetime

# Module-level flags (set by main.py after config load)
_DEBUG = False
_LOG_TRANSCRIPTS = False
_QUIET = False      # GUI mode: only errors are printed
_STREAM = None      # None means sys.stdout at call time


def set_debug(value):
    global _DEBUG
    _DEBUG = value


def set_log_transcripts(value):
    global _LOG_TRANSCRIPTS
    _LOG_TRANSCRIPTS = value


def set_gui_mode(value):
    """Route logs to stderr and keep stdout free for JSON status events."""
    global _QUIET, _STREAM
    _QUIET = value
    _STREAM = sys.stderr if value else None


def _emit(line):
    print(line, file=_STREAM or sys.stdout, flush=True)


def log_debug(msg):
    """Debug messages (only when debug=true)."""
    if _DEBUG and not _QUIET:
        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
        _emit(f"[{timestamp}] {msg}")


def log_info(msg):
    """Info messages (printed unless in GUI mode)."""
    if not _QUIET:
        _emit(msg)


def log_warning(msg):
    if not _QUIET:
        _emit(f"[WARN] {msg}")


def log_error(msg):
    """Error messages (always printed)."""
    _emit(f"[ERROR] {msg}")


def should_log_transcripts():
    """Check if transcription content should be logged."""
    return _LOG_TRANSCRIPTS
