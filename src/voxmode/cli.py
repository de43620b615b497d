#!/usr/bin/env python3
"""Command line interface for voxmode."""
import os

import rich_click as click
from rich_click import RichGroup

from voxmode import __version__, app_hooks

# Set up rich-click configuration globally
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.USE_MARKDOWN = False
click.rich_click.MARKUP_MODE = "rich"

os.environ.setdefault("RICH_CLICK_USE_RICH_MARKUP", "1")
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.SHOW_METAVARS_COLUMN = False
click.rich_click.APPEND_METAVARS_HELP = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "#ff5555"
click.rich_click.ERRORS_SUGGESTION = "Try running the '--help' flag for more information."
click.rich_click.MAX_WIDTH = 120
click.rich_click.COLOR_SYSTEM = "auto"
click.rich_click.ALIGN_OPTIONS_SWITCHES = True
click.rich_click.STYLE_OPTION = "#ff79c6"  # Dracula Pink - for option flags
click.rich_click.STYLE_SWITCH = "#50fa7b"  # Dracula Green - for switches
click.rich_click.STYLE_METAVAR = "#8BE9FD not bold"
click.rich_click.STYLE_HEADER_TEXT = "bold yellow"
click.rich_click.STYLE_USAGE = "#BD93F9"
click.rich_click.STYLE_USAGE_COMMAND = "bold"
click.rich_click.STYLE_HELPTEXT = "#B3B8C0"
click.rich_click.STYLE_OPTION_DEFAULT = "#ffb86c"  # Dracula Orange
click.rich_click.STYLE_OPTIONS_PANEL_BORDER = "dim"
click.rich_click.STYLE_COMMANDS_PANEL_BORDER = "dim"
click.rich_click.STYLE_COMMAND = "#50fa7b"
click.rich_click.STYLE_COMMANDS_TABLE_COLUMN_WIDTH_RATIO = (1, 3)

config_option = click.option(
    "-c",
    "--config",
    "config",
    multiple=True,
    type=click.Path(dir_okay=False),
    help="⚙️ Config file to load first (repeatable, earlier files win)",
)
debug_option = click.option("--debug", is_flag=True, help="🐞 Enable detailed debug logging")


@click.group(cls=RichGroup, context_settings={"help_option_names": ["-h", "--help"], "max_content_width": 120})
@click.version_option(version=__version__, prog_name="voxmode")
def main():
    """🎙️ [bold]voxmode[/bold] - launch shell commands by voice.

    Speak a keyphrase from your config; voxmode transcribes it, walks the
    command graph and runs the matching commands.
    """


@main.command()
@click.pass_context
@config_option
@click.option("-m", "--mode", type=str, help="🧭 Start in this mode instead of the default one")
@debug_option
def listen(ctx, config, mode, debug):
    """🎙️ Listen for one interaction and run its commands"""
    ctx.exit(app_hooks.on_listen(command_name="listen", config=config, mode=mode, debug=debug))


@main.command()
@click.pass_context
@config_option
@debug_option
def daemon(ctx, config, debug):
    """🛰️ Wait in the background; SIGUSR1 listens, SIGHUP reloads"""
    ctx.exit(app_hooks.on_daemon(command_name="daemon", config=config, debug=debug))


@main.command()
@click.pass_context
@config_option
@click.option("--json", is_flag=True, help="📋 Output the merged graph as JSON")
def check(ctx, config, json):
    """✅ Validate configuration and show the command graph"""
    ctx.exit(app_hooks.on_check(command_name="check", config=config, json=json))


@main.command()
@click.pass_context
@click.argument("TRANSCRIPT")
@config_option
@click.option("-m", "--mode", type=str, help="🧭 Match as if in this mode")
@click.option("--json", is_flag=True, help="📋 Output the match as JSON")
def match(ctx, transcript, config, mode, json):
    """🔎 Match a transcript against the graph without running anything"""
    ctx.exit(app_hooks.on_match(command_name="match", transcript=transcript, config=config, mode=mode, json=json))


@main.command()
@click.pass_context
@click.option("-p", "--path", type=click.Path(dir_okay=False), help="📄 Where to write (default: user config file)")
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def init(ctx, path, force):
    """📝 Write a starter configuration file"""
    ctx.exit(app_hooks.on_init(command_name="init", path=path, force=force))


def cli_entry():
    """Entry point for the installed ``voxmode`` script."""
    main()


if __name__ == "__main__":
    cli_entry()
