"""Shared runner for external producer processes (ffmpeg)."""

from __future__ import annotations

import logging
import shlex
import subprocess

from soundshelf.errors.exceptions import ProducerError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 600.0

_STDERR_TAIL = 2000


def run_external(
    command: list[str],
    timeout: float | None = DEFAULT_TIMEOUT,
) -> subprocess.CompletedProcess[bytes]:
    """Run ``command`` and return the completed process.

    A non-zero exit, a timeout or a missing binary raise a fatal
    ProducerError. Nothing is retried. On timeout or interruption the child
    process is killed before the exception propagates.
    """
    program = command[0]
    logger.debug("Running %s", shlex.join(command))
    try:
        result = subprocess.run(command, capture_output=True, timeout=timeout, check=False)
    except subprocess.TimeoutExpired as e:
        raise ProducerError(
            f"{program} did not finish within {timeout:g} seconds",
            fatal=True,
            stderr=_decode(e.stderr),
            timed_out=True,
        ) from e
    except OSError as e:
        raise ProducerError(f"{program} could not be executed: {e}", fatal=True) from e

    if result.returncode != 0:
        stderr = _decode(result.stderr)
        raise ProducerError(
            f"{program} returned exit code {result.returncode}: {stderr.strip()[-_STDERR_TAIL:]}",
            fatal=True,
            returncode=result.returncode,
            stderr=stderr,
        )
    return result


def _decode(output: bytes | str | None) -> str:
    if output is None:
        return ""
    if isinstance(output, str):
        return output
    return output.decode("utf-8", errors="replace")
