"""
Inkpost: Development Supervisor
===============================

What:  Runs the service and the Tailwind CSS watcher side by side during
       local development (`inkpost dev`).
How:   Each child is spawned with asyncio subprocess pipes; one task per pipe
       echoes lines prefixed with the child's name. An interrupt (SIGINT or
       SIGTERM), or every child exiting on its own, stops the group.

Shutdown sequence:
    1. terminate() every child still running
    2. wait up to `grace_period` seconds for each
    3. kill() whatever is left, then drain the output tasks
"""

import asyncio
import contextlib
import logging
import os
import signal
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

BACKEND_DIR = Path(__file__).resolve().parent.parent

# Per-pipe buffer; longer lines are echoed in chunks of this size
STREAM_LIMIT = 1024 * 1024

# (child name, stream name, line) → None
LineSink = Callable[[str, str, str], None]


def print_line(name: str, stream: str, line: str) -> None:
    target = sys.stdout if stream == "STDOUT" else sys.stderr
    print(f"{name} {stream}: {line}", file=target, flush=True)


@dataclass
class ChildSpec:
    """How to launch one supervised process."""
    name: str
    command: List[str]
    cwd: Optional[Path] = None
    env: Dict[str, str] = field(default_factory=dict)


def service_spec() -> ChildSpec:
    return ChildSpec(
        name="service",
        command=[sys.executable, "-m", "inkpost", "serve"],
        cwd=BACKEND_DIR,
        env={"DEV_MODE": "true", "RELOAD_ROUTE_ENABLED": "true"},
    )


def tailwind_spec(tailwind_bin: str) -> ChildSpec:
    return ChildSpec(
        name="tailwind",
        command=[
            tailwind_bin,
            "-c", "tailwind.config.js",
            "-i", "inkpost/static/input.css",
            "-o", "inkpost/static/styles.css",
            "--watch",
        ],
        cwd=BACKEND_DIR,
    )


class DevSupervisor:
    """
    Supervises a group of child processes.

    Usage:
        supervisor = DevSupervisor([service_spec(), tailwind_spec("tailwindcss")])
        await supervisor.run_until_interrupted()
    """

    def __init__(
        self,
        specs: List[ChildSpec],
        sink: LineSink = print_line,
        grace_period: float = 5.0,
        stream_limit: int = STREAM_LIMIT,
    ):
        self.specs = specs
        self.sink = sink
        self.grace_period = grace_period
        self.stream_limit = stream_limit
        self.processes: Dict[str, asyncio.subprocess.Process] = {}
        self._pumps: List[asyncio.Task] = []

    async def start(self) -> None:
        """
        Spawn every child in order.

        Raises:
            OSError: a command could not be started; children already
            running are stopped first.
        """
        for spec in self.specs:
            try:
                proc = await asyncio.create_subprocess_exec(
                    *spec.command,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    cwd=str(spec.cwd) if spec.cwd else None,
                    env={**os.environ, **spec.env},
                    limit=self.stream_limit,
                )
            except OSError:
                logger.error("failed to start %s: %s", spec.name, " ".join(spec.command))
                await self.stop()
                raise
            logger.info("started %s (pid %d)", spec.name, proc.pid)
            self.processes[spec.name] = proc
            self._pumps.append(asyncio.create_task(self._pump(spec.name, "STDOUT", proc.stdout)))
            self._pumps.append(asyncio.create_task(self._pump(spec.name, "STDERR", proc.stderr)))

    async def _pump(self, name: str, stream: str, reader: Optional[asyncio.StreamReader]) -> None:
        if reader is None:
            return
        continued = False
        while True:
            try:
                raw = await reader.readuntil(b"\n")
            except asyncio.IncompleteReadError as exc:
                # EOF; a final line without a newline is still echoed
                raw = exc.partial
            except asyncio.LimitOverrunError as exc:
                # Line longer than the buffer: echo what is buffered as one chunk
                chunk = await reader.read(exc.consumed)
                self.sink(name, stream, chunk.decode(errors="replace"))
                continued = True
                continue
            if not raw:
                break
            line = raw.decode(errors="replace").rstrip("\r\n")
            # the newline that ends a chunked line is not a line of its own
            if line or not continued:
                self.sink(name, stream, line)
            continued = False

    async def wait(self) -> Dict[str, int]:
        """Wait until every child has exited; returns exit codes by name."""
        return {name: await proc.wait() for name, proc in self.processes.items()}

    async def stop(self) -> Dict[str, int]:
        """Terminate every running child, killing those that ignore it."""
        for proc in self.processes.values():
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.terminate()

        codes: Dict[str, int] = {}
        for name, proc in self.processes.items():
            try:
                codes[name] = await asyncio.wait_for(proc.wait(), self.grace_period)
            except asyncio.TimeoutError:
                logger.warning("%s ignored terminate, killing", name)
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                codes[name] = await proc.wait()
        await self._drain()
        return codes

    async def _drain(self) -> None:
        if not self._pumps:
            return
        results = await asyncio.gather(*self._pumps, return_exceptions=True)
        self._pumps = []
        for result in results:
            if isinstance(result, Exception):
                logger.error("output relay failed: %r", result, exc_info=result)

    async def run_until_interrupted(self, stop_event: Optional[asyncio.Event] = None) -> Dict[str, int]:
        """
        Start the group and block until SIGINT/SIGTERM, `stop_event`, or all
        children exiting; then stop everything.
        """
        stop_event = stop_event or asyncio.Event()
        loop = asyncio.get_running_loop()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, stop_event.set)
                installed.append(sig)

        try:
            await self.start()
            stopper = asyncio.create_task(stop_event.wait())
            exited = asyncio.create_task(self.wait())
            await asyncio.wait({stopper, exited}, return_when=asyncio.FIRST_COMPLETED)
            stopper.cancel()
            if exited.done():
                codes = exited.result()
                await self._drain()
                logger.info("all children exited: %s", codes)
                return codes
            exited.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await exited
            logger.info("interrupted, stopping children...")
            return await self.stop()
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
