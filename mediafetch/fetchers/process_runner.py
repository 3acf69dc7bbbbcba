"""Process Runner - 외부 추출 도구 실행

- 종료 코드가 0이 아니어도 정상 결과로 반환합니다. (분류는 호출자 책임)
- 제한 시간 초과 시 SIGTERM → grace 대기 → SIGKILL 후 AcquisitionTimeoutException.
- stdout/stderr는 증분으로 읽어 각각 output_limit_bytes 까지만 보관합니다.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from mediafetch.core.exceptions import AcquisitionTimeoutException, ProcessSpawnException
from mediafetch.core.logging import logger

READ_CHUNK_BYTES = 64 * 1024


@dataclass
class ProcessResult:
    """프로세스 실행 결과

    Attributes:
        exit_code: 종료 코드
        stdout: 표준 출력 (UTF-8, 잘못된 바이트는 치환)
        stderr: 표준 에러
        truncated: 출력 상한 초과로 일부 버려졌는지 여부
        elapsed_ms: 소요 시간 (밀리초)
    """

    exit_code: int
    stdout: str
    stderr: str
    truncated: bool
    elapsed_ms: float

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class _BoundedBuffer:
    def __init__(self, limit: int) -> None:
        self.limit = limit
        self._chunks: list[bytes] = []
        self._size = 0
        self.truncated = False

    def feed(self, chunk: bytes) -> None:
        remaining = self.limit - self._size
        if remaining <= 0:
            self.truncated = True
            return
        if len(chunk) > remaining:
            chunk = chunk[:remaining]
            self.truncated = True
        self._chunks.append(chunk)
        self._size += len(chunk)

    def text(self) -> str:
        return b"".join(self._chunks).decode("utf-8", errors="replace")


class ProcessRunner:
    """비동기 서브프로세스 실행기

    Usage:
        runner = ProcessRunner(kill_grace_s=5.0, output_limit_bytes=10 * 1024 * 1024)
        result = await runner.run(["yt-dlp", "--version"], timeout_s=30)
    """

    def __init__(self, *, kill_grace_s: float = 5.0, output_limit_bytes: int = 10 * 1024 * 1024) -> None:
        self.kill_grace_s = kill_grace_s
        self.output_limit_bytes = output_limit_bytes

    async def run(self, args: Sequence[str], timeout_s: float) -> ProcessResult:
        """프로세스 실행

        Args:
            args: [binary, arg1, ...]
            timeout_s: 벽시계 기준 제한 시간 (초)

        Returns:
            ProcessResult: 실행 결과

        Raises:
            ProcessSpawnException: 바이너리를 실행할 수 없음
            AcquisitionTimeoutException: 제한 시간 초과 (프로세스는 종료됨)
        """
        if not args:
            raise ValueError("args must not be empty")
        if timeout_s <= 0:
            raise ValueError(f"Invalid timeout: {timeout_s}")

        binary = str(args[0])
        started = time.monotonic()

        try:
            proc = await asyncio.create_subprocess_exec(
                *[str(a) for a in args],
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise ProcessSpawnException(binary, "binary not found") from e
        except PermissionError as e:
            raise ProcessSpawnException(binary, "permission denied") from e
        except OSError as e:
            raise ProcessSpawnException(binary, f"{type(e).__name__}: {e}") from e

        logger.debug(f"[ProcessRunner] Started {binary} (pid={proc.pid}, timeout={timeout_s:.0f}s)")

        stdout_buf = _BoundedBuffer(self.output_limit_bytes)
        stderr_buf = _BoundedBuffer(self.output_limit_bytes)

        async def _communicate() -> int:
            await asyncio.gather(
                self._drain(proc.stdout, stdout_buf),
                self._drain(proc.stderr, stderr_buf),
            )
            return await proc.wait()

        try:
            exit_code = await asyncio.wait_for(_communicate(), timeout=timeout_s)
        except asyncio.TimeoutError as e:
            logger.warning(f"[ProcessRunner] {binary} timed out after {timeout_s:.0f}s, terminating")
            await self._terminate(proc)
            raise AcquisitionTimeoutException(
                binary, timeout_s, {"binary": binary, "timeout_s": timeout_s}
            ) from e
        except asyncio.CancelledError:
            logger.info(f"[ProcessRunner] {binary} cancelled, terminating (pid={proc.pid})")
            await self._terminate(proc)
            raise

        elapsed_ms = (time.monotonic() - started) * 1000
        truncated = stdout_buf.truncated or stderr_buf.truncated
        if truncated:
            logger.warning(f"[ProcessRunner] {binary} output exceeded {self.output_limit_bytes} bytes, truncated")

        logger.debug(f"[ProcessRunner] {binary} exited with {exit_code} in {elapsed_ms:.0f}ms")
        return ProcessResult(
            exit_code=exit_code,
            stdout=stdout_buf.text(),
            stderr=stderr_buf.text(),
            truncated=truncated,
            elapsed_ms=elapsed_ms,
        )

    @staticmethod
    async def _drain(stream: Optional[asyncio.StreamReader], buffer: _BoundedBuffer) -> None:
        if stream is None:
            return
        while True:
            chunk = await stream.read(READ_CHUNK_BYTES)
            if not chunk:
                return
            buffer.feed(chunk)

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """SIGTERM 후 grace 시간 내 종료되지 않으면 SIGKILL"""
        if proc.returncode is not None:
            return
        try:
            proc.terminate()
        except ProcessLookupError:
            return

        try:
            await asyncio.wait_for(proc.wait(), timeout=self.kill_grace_s)
            return
        except asyncio.TimeoutError:
            logger.warning(f"[ProcessRunner] pid={proc.pid} ignored SIGTERM, sending SIGKILL")

        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()
