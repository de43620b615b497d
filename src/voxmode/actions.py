#!/usr/bin/env python3
"""Fire-and-forget execution of command actions."""
from __future__ import annotations

import logging
import subprocess

from voxmode.core.errors import SpawnError

logger = logging.getLogger(__name__)


def spawn(shell_command: str) -> subprocess.Popen:
    """
    Start ``shell_command`` through ``sh -c`` without waiting for it.

    The child's stdio is connected to /dev/null and it runs in its own
    session, so it outlives voxmode and never receives its signals.
    """
    logger.info(f"Running command: {shell_command}")
    try:
        return subprocess.Popen(
            ["sh", "-c", shell_command],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        raise SpawnError(shell_command, str(e)) from e
