import asyncio
import logging
from typing import List, Optional

from ..errors import ToolExecutionError
from .base import SandboxLimits, ToolResult

logger = logging.getLogger(__name__)


async def _read_bounded(stream: asyncio.StreamReader, limit: int) -> bytes:
    buf = bytearray()
    while True:
        chunk = await stream.read(65536)
        if not chunk:
            return bytes(buf)
        buf.extend(chunk)
        if len(buf) > limit:
            raise ToolExecutionError(f"output exceeded {limit} bytes")


async def run_command(
    command: str,
    args: List[str],
    limits: SandboxLimits,
    cwd: Optional[str] = None,
) -> ToolResult:
    """Run ``command`` without a shell, bounded in time and captured output.

    A timeout, an output overflow, a spawn failure or a non-zero exit raises
    ToolExecutionError; the process is killed if still running.
    """
    timeout_ms = limits.timeout_ms
    max_output_bytes = limits.max_output_bytes

    try:
        proc = await asyncio.create_subprocess_exec(
            command,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            stdin=asyncio.subprocess.DEVNULL,
            cwd=cwd,
        )
    except OSError as exc:
        raise ToolExecutionError(f"failed to start {command}: {exc}") from exc

    async def _collect():
        readers = [
            asyncio.ensure_future(_read_bounded(proc.stdout, max_output_bytes)),
            asyncio.ensure_future(_read_bounded(proc.stderr, max_output_bytes)),
        ]
        try:
            out, err = await asyncio.gather(*readers)
        finally:
            # the first failure wins; the other reader is stopped and reaped
            for reader in readers:
                reader.cancel()
            await asyncio.gather(*readers, return_exceptions=True)
        code = await proc.wait()
        return out, err, code

    try:
        stdout, stderr, exit_code = await asyncio.wait_for(_collect(), timeout=timeout_ms / 1000)
    except asyncio.TimeoutError:
        _kill(proc)
        await proc.wait()
        raise ToolExecutionError(f"{command} timed out after {timeout_ms} ms")
    except ToolExecutionError as exc:
        _kill(proc)
        await proc.wait()
        raise ToolExecutionError(f"{command} {exc}") from exc

    result = {
        "stdout": stdout.decode("utf-8", errors="replace").rstrip("\n"),
        "stderr": stderr.decode("utf-8", errors="replace").rstrip("\n"),
        "exitCode": exit_code,
    }
    if exit_code != 0:
        detail = result["stderr"] or result["stdout"]
        message = f"{command} exited with code {exit_code}"
        if detail:
            message = f"{message}: {detail[:500]}"
        raise ToolExecutionError(message, stdout=result["stdout"], stderr=result["stderr"], exit_code=exit_code)
    return result


def _kill(proc) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            logger.debug("process %s already exited", proc.pid)
