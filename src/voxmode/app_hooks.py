#!/usr/bin/env python3
"""
App hooks for the voxmode CLI - implementation of every command.

cli.py only declares options; each command calls ``on_<command>`` here with
its parameters and exits with the returned code.
"""
from __future__ import annotations

import json as json_lib
import os
from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from voxmode.core.config import ConfigLoader, write_default_config
from voxmode.core.errors import ConfigurationError, VoxmodeError
from voxmode.core.logging import setup_structured_logging

console = Console()
err_console = Console(stderr=True)


def _configure_logging(config: ConfigLoader, debug: bool) -> None:
    settings = config.logging_settings
    setup_structured_logging(
        "voxmode",
        log_level="DEBUG" if debug else settings.level,
        log_output=settings.output,
        log_directory=settings.directory,
    )


def _report_error(error: Exception, debug: bool) -> None:
    if debug:
        err_console.print_exception()
        return
    message = str(error)
    path = getattr(error, "path", None)
    if path and path not in message:
        message = f"{path}: {message}"
    err_console.print(f"[bold red]Error:[/bold red] {message}", highlight=False)


def _load(config: Sequence[str], debug: bool) -> ConfigLoader:
    loader = ConfigLoader(config)
    _configure_logging(loader, debug)
    return loader


def on_listen(config: Sequence[str] = (), mode: Optional[str] = None, debug: bool = False, **kwargs) -> int:
    """Handle the listen command - run one voice interaction"""
    try:
        from voxmode.session import SessionLoop
        from voxmode.transcription.decoder import WhisperDecoder

        loader = _load(config, debug)
        decoder = WhisperDecoder(loader.decoder_settings)
        session = SessionLoop(
            loader.graph,
            decoder,
            listening=loader.listening_settings,
            audio=loader.audio_settings,
        )
        outcome = session.run(mode)
        for action in outcome.actions:
            err_console.print(f"[green]▶[/green] {escape(action)}", highlight=False)
        return 0
    except KeyboardInterrupt:
        return 0
    except (VoxmodeError, ImportError) as e:
        _report_error(e, debug)
        return 1


def on_daemon(config: Sequence[str] = (), debug: bool = False, **kwargs) -> int:
    """Handle the daemon command - wait for signals in the background"""
    try:
        from voxmode.daemon import Daemon, install_signal_handlers

        loader = _load(config, debug)
        daemon = Daemon(loader, on_reload=lambda new_config: _configure_logging(new_config, debug))
        install_signal_handlers(daemon.events)
        err_console.print(
            f"voxmode daemon running (pid {os.getpid()}). "
            f"Send SIGUSR1 to listen, SIGHUP to reload, SIGTERM to stop.",
            highlight=False,
        )
        daemon.serve_forever()
        return 0
    except KeyboardInterrupt:
        return 0
    except (VoxmodeError, ImportError) as e:
        _report_error(e, debug)
        return 1


def on_check(config: Sequence[str] = (), json: bool = False, **kwargs) -> int:
    """Validate configuration and show the command graph"""
    try:
        loader = ConfigLoader(config)
    except ConfigurationError as e:
        if json:
            print(json_lib.dumps({"valid": False, "error": str(e), "path": e.path}, indent=2))
        else:
            _report_error(e, debug=False)
        return 1

    if json:
        print(
            json_lib.dumps(
                {
                    "valid": True,
                    "sources": [str(p) for p in loader.sources],
                    "graph": loader.graph.to_config(),
                },
                indent=2,
            )
        )
        return 0

    table = Table(title="Voice commands", show_header=True, header_style="bold magenta")
    table.add_column("Mode", style="cyan")
    table.add_column("Keyphrase", style="yellow")
    table.add_column("Command", style="green")
    table.add_column("Next mode", style="cyan")

    sections = [("(default)", loader.graph.default)] + [(m.name, m.commands) for m in loader.graph.modes]
    for mode_name, commands in sections:
        for command in commands:
            keyphrase = escape(command.message) if not command.is_fallback else "[dim](fallback)[/dim]"
            table.add_row(mode_name, keyphrase, escape(command.action or ""), command.next_mode or "")

    console.print(table)
    for source in loader.sources:
        console.print(f"[dim]loaded {source}[/dim]", highlight=False)
    console.print("[bold green]✓ Configuration is valid[/bold green]")
    return 0


def on_match(
    transcript: str, config: Sequence[str] = (), mode: Optional[str] = None, json: bool = False, **kwargs
) -> int:
    """Dry-run a transcript through the command graph without audio or spawning"""
    from voxmode.core.errors import ModeNotFoundError
    from voxmode.modes.dispatch import DispatchEngine

    try:
        loader = ConfigLoader(config)
        if mode is not None and not loader.graph.has_mode(mode):
            raise ModeNotFoundError(mode)
    except ConfigurationError as e:
        _report_error(e, debug=False)
        return 1

    result = DispatchEngine(loader.graph).match(transcript, mode)
    if json:
        print(
            json_lib.dumps(
                {
                    "transcript": transcript,
                    "path": [c.message for c in result.path],
                    "actions": result.actions,
                    "next_mode": result.next_mode,
                },
                indent=2,
            )
        )
        return 0

    if not result.matched:
        console.print("[yellow]No command matched[/yellow]")
        return 0
    path = " → ".join(c.message or "(fallback)" for c in result.path)
    console.print(f"Path: {escape(path)}", highlight=False)
    for action in result.actions:
        console.print(f"[green]▶[/green] {escape(action)}", highlight=False)
    console.print(f"Next mode: {result.next_mode or '(none)'}", highlight=False)
    return 0


def on_init(path: Optional[str] = None, force: bool = False, **kwargs) -> int:
    """Write a starter configuration file"""
    try:
        target = write_default_config(path, force=force)
    except ConfigurationError as e:
        _report_error(e, debug=False)
        return 1
    console.print(f"[bold green]✓[/bold green] Created {target}", highlight=False)
    return 0
