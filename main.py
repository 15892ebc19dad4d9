#!/usr/bin/env python3
"""Keyscribe — hotkey-triggered dictation with voice-activity auto-stop."""

import os

# Ensure DISPLAY is set (needed by the hotkey listener and xdotool)
if not os.environ.get('DISPLAY'):
    os.environ['DISPLAY'] = ':0'

import argparse
import asyncio
import signal
import sys
import traceback

import logging_utils
from logging_utils import log_info, log_error, log_debug
from config import load_config
from context import PipelineContext
from hotkey import HotkeyEvent


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="keyscribe",
        description="Hotkey-triggered speech-to-text: record, transcribe, type.",
    )
    parser.add_argument("--config", help="path to settings.conf (default: beside main.py)")
    parser.add_argument("--gui-mode", action="store_true",
                        help="emit JSON status events on stdout; logs go to stderr")
    parser.add_argument("--test-mode", action="store_true",
                        help="run one synthetic recording cycle after startup")
    parser.add_argument("--debug", action="store_true", help="verbose logging")
    return parser.parse_args(argv)


async def _test_cycle(ctx, seconds):
    """Press the hotkey, wait, press it again: one full recording cycle."""
    combination = ctx.config['hotkey']
    await asyncio.sleep(0.5)
    log_info(f"[TEST] Synthetic hotkey press, recording for {seconds:.1f}s")
    ctx.hotkey_mailbox.post(HotkeyEvent(ctx.hotkey_id, combination, True))
    ctx.hotkey_mailbox.post(HotkeyEvent(ctx.hotkey_id, combination, False))
    await asyncio.sleep(seconds)
    log_info("[TEST] Synthetic hotkey press, stopping")
    ctx.hotkey_mailbox.post(HotkeyEvent(ctx.hotkey_id, combination, True))
    ctx.hotkey_mailbox.post(HotkeyEvent(ctx.hotkey_id, combination, False))


async def run_pipeline(config, gui_mode=False, test_mode=False):
    """Build, run until the first top-level task exits, tear down. Returns exit code."""
    ctx = PipelineContext(config, gui_mode=gui_mode)
    try:
        await ctx.build()
        ctx.start_io()
    except Exception as e:
        log_error(f"Failed to initialize: {e}")
        log_debug(traceback.format_exc())
        await ctx.close()
        return 1

    loop = asyncio.get_running_loop()
    shutdown = asyncio.Event()

    def handle_signal(sig):
        log_info(f"[SHUTDOWN] Signal {sig.name} received")
        shutdown.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    dispatcher = ctx.make_dispatcher()
    output = ctx.make_output_stage()

    tasks = {
        asyncio.create_task(dispatcher.run(), name="dispatcher"),
        asyncio.create_task(output.run(), name="output"),
        asyncio.create_task(shutdown.wait(), name="shutdown"),
    }
    helper = None
    if test_mode:
        helper = asyncio.create_task(_test_cycle(ctx, config['test_record_seconds']))

    combination = config['hotkey']
    log_info("Keyscribe is ready!")
    log_info(f"Press {combination} to start recording")
    if config['vad_auto_stop']:
        log_info(f"Auto-stop enabled: recording stops after {config['vad_timeout_ms']}ms of silence")
    else:
        log_info(f"Press {combination} again to stop recording")
    log_info("Press Ctrl+C to exit")

    try:
        # First task to exit wins; everything else is abandoned
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                log_error(f"{task.get_name()} task failed: {task.exception()}")
        for task in pending:
            task.cancel()
        if helper is not None:
            helper.cancel()
            pending.add(helper)
        await asyncio.gather(*pending, *dispatcher.jobs, return_exceptions=True)
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await ctx.close()

    log_info("Keyscribe stopped.")
    return 0


def main(argv=None):
    args = parse_args(argv)

    logging_utils.set_gui_mode(args.gui_mode)
    try:
        config = load_config(args.config)
    except Exception as e:
        log_error(f"Failed to load configuration: {e}")
        return 1

    logging_utils.set_debug(args.debug or config.get('debug', False))
    logging_utils.set_log_transcripts(config.get('log_transcripts', False))

    log_info("=" * 60)
    log_info("KEYSCRIBE - Hotkey Speech-to-Text")
    log_info("=" * 60)
    if os.path.exists(config['config_file']):
        log_info(f"Configuration loaded from {config['config_file']}")
    else:
        log_info("No settings.conf found, using defaults")

    try:
        return asyncio.run(run_pipeline(config, args.gui_mode, args.test_mode))
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        log_error(f"Unhandled exception: {e}")
        traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
