"""Execution of delegate programs for dynamic routes."""

from __future__ import annotations

import asyncio
import contextlib
import json
from typing import Sequence

import structlog
from pydantic import ValidationError

from bunhop.errors import DelegateError
from bunhop.models import DelegateResponse

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0
DEFAULT_MAX_OUTPUT_BYTES = 1024 * 1024

# Bytes of stderr kept in error messages.
_STDERR_LIMIT = 2048


class _OutputTooLarge(Exception):
    pass


async def _read_stream(
    stream: asyncio.StreamReader, limit: int, truncate: bool = False
) -> bytes:
    """Read *stream* to EOF, holding at most *limit* bytes.

    With *truncate* the excess is drained and dropped; otherwise exceeding
    the limit raises :class:`_OutputTooLarge`.
    """
    data = bytearray()
    while True:
        chunk = await stream.read(65536)
        if not chunk:
            return bytes(data)
        if len(data) + len(chunk) > limit:
            if not truncate:
                raise _OutputTooLarge
            chunk = chunk[: max(limit - len(data), 0)]
        data.extend(chunk)


async def _collect(proc: asyncio.subprocess.Process, max_output: int) -> tuple[bytes, bytes]:
    stderr_task = asyncio.ensure_future(_read_stream(proc.stderr, _STDERR_LIMIT, truncate=True))
    try:
        stdout = await _read_stream(proc.stdout, max_output)
        stderr = await stderr_task
        await proc.wait()
    finally:
        stderr_task.cancel()
    return stdout, stderr


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()


def parse_response(executable: str, stdout: bytes) -> DelegateResponse:
    """Validate a delegate's standard output.

    Args:
        executable: Program path, for error messages.
        stdout:     Raw captured output.

    Returns:
        The single ``redirect`` or ``body`` response.

    Raises:
        DelegateError: If the output is not exactly one JSON object with
            exactly one of the two keys mapped to a string.
    """
    try:
        payload = json.loads(stdout.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DelegateError(executable, f"output is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise DelegateError(executable, "output must be a JSON object")

    try:
        return DelegateResponse.model_validate(payload)
    except ValidationError as exc:
        errors = "; ".join(err["msg"] for err in exc.errors())
        raise DelegateError(executable, f"unexpected response shape: {errors}") from exc


async def invoke(
    executable_path: str,
    args: Sequence[str],
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    max_output: int = DEFAULT_MAX_OUTPUT_BYTES,
) -> DelegateResponse:
    """Run *executable_path* with *args* and parse its response.

    Arguments are passed as separate argv entries; no shell is involved.
    The process is killed if it outlives *timeout* seconds or if the
    awaiting task is cancelled.

    Args:
        executable_path: Absolute path of the program.
        args:            Argument words from the query.
        timeout:         Wall-clock limit in seconds.
        max_output:      Largest accepted stdout, in bytes.

    Returns:
        :class:`DelegateResponse` with either ``redirect`` or ``body`` set.

    Raises:
        DelegateError: On spawn failure, timeout, oversized or malformed
            output, or a non-zero exit status.
    """
    log = logger.bind(executable=executable_path, args=len(args))

    try:
        proc = await asyncio.create_subprocess_exec(
            executable_path,
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        log.warning("delegate.spawn_failed", error=str(exc))
        raise DelegateError(executable_path, f"failed to start: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(_collect(proc, max_output), timeout=timeout)
    except _OutputTooLarge as exc:
        await _terminate(proc)
        log.warning("delegate.output_too_large", max_output=max_output)
        raise DelegateError(
            executable_path, f"output exceeds the {max_output} byte limit"
        ) from exc
    except asyncio.TimeoutError as exc:
        await _terminate(proc)
        log.warning("delegate.timeout", timeout=timeout)
        raise DelegateError(executable_path, f"timed out after {timeout}s") from exc
    except asyncio.CancelledError:
        await asyncio.shield(_terminate(proc))
        raise

    if proc.returncode != 0:
        detail = stderr[:_STDERR_LIMIT].decode("utf-8", errors="replace").strip()
        log.warning("delegate.nonzero_exit", returncode=proc.returncode, stderr=detail)
        raise DelegateError(
            executable_path,
            f"exited with status {proc.returncode}" + (f": {detail}" if detail else ""),
        )

    response = parse_response(executable_path, stdout)
    log.debug("delegate.completed", redirect=response.redirect is not None)
    return response
