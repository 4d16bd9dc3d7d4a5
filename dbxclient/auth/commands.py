"""Runs local cloud CLIs (az, gcloud) for token federation."""

import asyncio
from collections.abc import Awaitable, Callable

from dbxclient.errors import FederationError

CommandExecutor = Callable[..., Awaitable[str]]


async def run_command(*args: str) -> str:
    """Run a command and return its stdout.

    Raises:
        FederationError: the binary is missing or exits non-zero.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise FederationError(f"{args[0]} is not installed or not on PATH") from e

    stdout, stderr = await process.communicate()
    if process.returncode != 0:
        detail = stderr.decode(errors="replace").strip()
        raise FederationError(f"`{' '.join(args)}` failed with exit code {process.returncode}: {detail}")
    return stdout.decode(errors="replace")
