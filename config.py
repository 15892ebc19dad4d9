"""Keyscribe configuration loader."""

import os
import configparser

_BASE_DIR = os.path.dirname(os.path.abspath(__file__))
_CONFIG_FILE = os.path.join(_BASE_DIR, "settings.conf")

VAD_SENSITIVITY_MODES = {
    'low': 0,
    'normal': 1,
    'high': 2,
    'veryhigh': 3,
}

DEFAULT_PROMPT_TEMPLATE = """Fix transcription errors in this speech-to-text from a developer/technical context:

Common fixes needed:
- "cooper tease" -> "Kubernetes"
- "get hub" -> "GitHub"
- "pie thon" -> "Python"
- "A-P-I" -> "API"
- "S-S-H" -> "SSH"
- Technical acronyms spelled out -> proper form

Original: "{text}"
Corrected:"""


def load_config(path=None):
    """Load configuration from settings.conf, with sensible defaults. Returns a dict.

    Raises ValueError (or configparser.Error) on malformed values.
    """
    config = configparser.ConfigParser(interpolation=None)
    config.optionxform = str  # Preserve case (default lowercases keys)

    # Defaults
    defaults = {
        'hotkey': {'combination': 'ctrl+shift+space'},
        'audio': {
            'sample_rate': '16000',
            'channels': '1',
            'device': '',
            'queue_max_chunks': '4096',
        },
        'vad': {
            'model_path': '',
            'sensitivity': 'Normal',
            'timeout_ms': '1500',
            'auto_stop': 'true',
        },
        'speech': {
            'model_dir': os.path.join('models', 'whisper-small'),
            'language': 'en',
            'device': 'cpu',
            'compute_type': 'int8',
            'beam_size': '5',
        },
        'text': {'typing_delay_ms': '0', 'auto_type': 'true'},
        'refinement': {
            'enabled': 'false',
            'model_name': 'gemma3:1b',
            'ollama_url': 'http://localhost:11434',
            'prompt_template': DEFAULT_PROMPT_TEMPLATE,
            'max_tokens': '150',
            'temperature': '0.1',
            'timeout_ms': '8000',
            'max_retries': '1',
            'fallback_on_timeout': 'true',
        },
        'notify': {'port': '47823', 'state_file': '/tmp/keyscribe_state.json'},
        'behavior': {
            'debug_mode': 'false',
            'log_transcripts': 'false',
            'test_record_seconds': '3.0',
        },
    }

    for section, values in defaults.items():
        config[section] = values

    config_file = path or _CONFIG_FILE
    if path and not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found: {path}")
    if os.path.exists(config_file):
        config.read(config_file)

    sensitivity = config.get('vad', 'sensitivity').strip()
    if sensitivity.lower() not in VAD_SENSITIVITY_MODES:
        raise ValueError(
            f"Unknown VAD sensitivity '{sensitivity}'. "
            f"Expected one of: Low, Normal, High, VeryHigh"
        )

    # Build result dict with typed values
    result = {
        'base_dir': _BASE_DIR,
        'config_file': config_file,

        # Hotkey
        'hotkey': config.get('hotkey', 'combination').strip(),

        # Audio
        'sample_rate': config.getint('audio', 'sample_rate'),
        'channels': config.getint('audio', 'channels'),
        'audio_device': config.get('audio', 'device').strip(),
        'queue_max_chunks': config.getint('audio', 'queue_max_chunks'),

        # VAD
        'vad_model_path': config.get('vad', 'model_path').strip(),
        'vad_sensitivity': VAD_SENSITIVITY_MODES[sensitivity.lower()],
        'vad_timeout_ms': config.getint('vad', 'timeout_ms'),
        'vad_auto_stop': config.getboolean('vad', 'auto_stop'),

        # Speech
        'speech_model_dir': config.get('speech', 'model_dir').strip(),
        'speech_language': config.get('speech', 'language').strip(),
        'speech_device': config.get('speech', 'device').strip(),
        'speech_compute_type': config.get('speech', 'compute_type').strip(),
        'speech_beam_size': config.getint('speech', 'beam_size'),

        # Text output
        'typing_delay_ms': config.getint('text', 'typing_delay_ms'),
        'auto_type': config.getboolean('text', 'auto_type'),

        # Notifications
        'notify_port': config.getint('notify', 'port'),
        'state_file': config.get('notify', 'state_file').strip(),

        # Behavior
        'debug': config.getboolean('behavior', 'debug_mode'),
        'log_transcripts': config.getboolean('behavior', 'log_transcripts'),
        'test_record_seconds': config.getfloat('behavior', 'test_record_seconds'),

        # Refinement (None when disabled)
        'refinement': _build_refinement(config),
    }

    # Environment overrides
    if os.environ.get('KEYSCRIBE_MODEL_PATH'):
        result['speech_model_dir'] = os.environ['KEYSCRIBE_MODEL_PATH']
    if os.environ.get('KEYSCRIBE_HOTKEY'):
        result['hotkey'] = os.environ['KEYSCRIBE_HOTKEY']

    result['speech_model_dir'] = _resolve_path(result['speech_model_dir'])
    if result['vad_model_path']:
        result['vad_model_path'] = _resolve_path(result['vad_model_path'])

    if result['sample_rate'] <= 0:
        raise ValueError(f"audio sample_rate must be positive (got {result['sample_rate']})")
    if result['queue_max_chunks'] <= 0:
        raise ValueError(f"audio queue_max_chunks must be positive (got {result['queue_max_chunks']})")

    return result


def _build_refinement(config):
    """Build the refinement block. Returns None when refinement is disabled."""
    if not config.getboolean('refinement', 'enabled'):
        return None

    template = config.get('refinement', 'prompt_template')
    if '{text}' not in template:
        raise ValueError("refinement prompt_template must contain a {text} placeholder")

    return {
        'model_name': config.get('refinement', 'model_name').strip(),
        'ollama_url': config.get('refinement', 'ollama_url').strip().rstrip('/'),
        'prompt_template': template,
        'max_tokens': config.getint('refinement', 'max_tokens'),
        'temperature': config.getfloat('refinement', 'temperature'),
        'timeout_ms': config.getint('refinement', 'timeout_ms'),
        'max_retries': config.getint('refinement', 'max_retries'),
        'fallback_on_timeout': config.getboolean('refinement', 'fallback_on_timeout'),
    }


def _resolve_path(value):
    """Expand relative paths against the base dir; bare model names pass through."""
    if os.sep not in value and '/' not in value:
        return value
    if os.path.isabs(value):
        return value
    return os.path.join(_BASE_DIR, value)
