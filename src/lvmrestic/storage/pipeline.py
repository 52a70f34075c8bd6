# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/storage/pipeline.py

"""
Multi-stage byte pipelines between external commands.

A Pipeline is the ``dd | pigz | restic`` chain: an optional source file read
in fixed-size chunks, a sequence of command stages wired stdout to stdin,
and a sink that receives whatever the last stage writes. Unlike a shell
pipeline, success is judged over every stage: if the source cannot be read,
any stage exits non-zero, or the sink raises, the whole pipeline fails with
PipelineError.
"""

import os
import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Sequence

from loguru import logger

from lvmrestic.config.manager import DEFAULT_CHUNK_SIZE
from lvmrestic.system.exceptions import MissingDependency, PipelineError

TERMINATE_TIMEOUT_SECONDS = 10
_READ_SIZE = 64 * 1024
_STDERR_TAIL_LINES = 5


@dataclass
class Stage:
    argv: list[str]
    name: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            self.name = os.path.basename(self.argv[0])


@dataclass
class PipelineResult:
    returncodes: dict[str, int] = field(default_factory=dict)
    bytes_in: int = 0
    bytes_out: int = 0


class Pipeline:
    """Run stages concurrently and judge them together.

    Usage:
        pipeline = Pipeline([["pigz", "--fast"], ["restic", "backup", "--stdin"]],
                            source=Path("/dev/vg0/data_snapshot"))
        pipeline.run(sink=log.write)
    """

    def __init__(self, stages: Sequence[Sequence[str] | Stage], source: Optional[Path] = None,
                 chunk_size: int = DEFAULT_CHUNK_SIZE, env: Optional[dict[str, str]] = None,
                 cwd: Optional[Path] = None, merge_stderr: bool = True) -> None:
        if not stages:
            raise ValueError("A pipeline needs at least one stage")
        self.stages = [s if isinstance(s, Stage) else Stage(list(s)) for s in stages]
        self.source = source
        self.chunk_size = chunk_size
        self.env = env
        self.cwd = cwd
        # Merge the last stage's stderr into the sink, like `2>&1 | tee`
        self.merge_stderr = merge_stderr

        self._procs: list[subprocess.Popen] = []
        self._errors: dict[str, str] = {}
        self._stderr: dict[str, list[str]] = {}
        self._lock = threading.Lock()
        self._bytes_in = 0

    def describe(self) -> str:
        parts = [f"<{self.source}"] if self.source else []
        parts.extend(" ".join(s.argv) for s in self.stages)
        return " | ".join(parts)

    def run(self, sink: Callable[[bytes], None]) -> PipelineResult:
        """Run to completion, feeding the last stage's output to sink.

        Raises:
            MissingDependency: If a stage's executable does not exist
            PipelineError: If any stage, the source, or the sink failed
        """
        logger.debug(f"Starting pipeline: {self.describe()}")
        threads: list[threading.Thread] = []
        result = PipelineResult()
        try:
            self._spawn()
            if self.source is not None:
                threads.append(self._start_thread(self._feed, "source"))
            for stage, proc in zip(self.stages, self._procs):
                if proc.stderr is not None:
                    threads.append(self._start_thread(self._drain_stderr, stage.name, stage, proc))

            last = self._procs[-1]
            while True:
                chunk = last.stdout.read1(_READ_SIZE)
                if not chunk:
                    break
                result.bytes_out += len(chunk)
                try:
                    sink(chunk)
                except OSError as e:
                    self._record("sink", f"sink failed: {e}")
                    self._terminate()
                    break

            for proc in self._procs:
                proc.wait()
        finally:
            self._terminate()
            # The feeder holds the source device open until it returns
            for thread in threads:
                thread.join(timeout=TERMINATE_TIMEOUT_SECONDS)

        result.bytes_in = self._bytes_in
        for stage, proc in zip(self.stages, self._procs):
            result.returncodes[stage.name] = proc.returncode
            if proc.returncode != 0 and stage.name not in self._errors:
                tail = "; ".join(self._stderr.get(stage.name, [])[-_STDERR_TAIL_LINES:])
                message = f"exited with status {proc.returncode}"
                self._record(stage.name, f"{message}: {tail}" if tail else message)

        if self._errors:
            details = ", ".join(f"{name} {msg}" for name, msg in self._errors.items())
            raise PipelineError(f"Pipeline failed: {details}", failed_stages=list(self._errors))

        logger.debug(f"Pipeline finished: {result.bytes_in} bytes in, {result.bytes_out} bytes out")
        return result

    def _spawn(self) -> None:
        previous_stdout = None
        for index, stage in enumerate(self.stages):
            is_last = index == len(self.stages) - 1
            if previous_stdout is not None:
                stdin = previous_stdout
            elif self.source is not None:
                stdin = subprocess.PIPE
            else:
                stdin = subprocess.DEVNULL
            stderr = subprocess.STDOUT if (is_last and self.merge_stderr) else subprocess.PIPE
            try:
                proc = subprocess.Popen(stage.argv, stdin=stdin, stdout=subprocess.PIPE,
                                        stderr=stderr, env=self.env, cwd=self.cwd)
            except FileNotFoundError as e:
                raise MissingDependency(f"Please install {stage.argv[0]}", tool=stage.argv[0]) from e
            if previous_stdout is not None:
                # Only the child holds the read end now, so a dying reader
                # delivers SIGPIPE upstream instead of blocking it
                previous_stdout.close()
            self._procs.append(proc)
            previous_stdout = proc.stdout

    def _start_thread(self, target: Callable, name: str, *args) -> threading.Thread:
        thread = threading.Thread(target=target, args=args, name=f"pipeline-{name}", daemon=True)
        thread.start()
        return thread

    def _feed(self) -> None:
        stdin = self._procs[0].stdin
        try:
            with open(self.source, "rb") as src:
                while True:
                    chunk = src.read(self.chunk_size)
                    if not chunk:
                        break
                    stdin.write(chunk)
                    self._bytes_in += len(chunk)
        except BrokenPipeError:
            self._record("source", f"broken pipe after {self._bytes_in} bytes")
        except OSError as e:
            self._record("source", f"read of {self.source} failed: {e}")
        finally:
            try:
                stdin.close()
            except OSError:
                pass

    def _drain_stderr(self, stage: Stage, proc: subprocess.Popen) -> None:
        lines = self._stderr.setdefault(stage.name, [])
        for raw in iter(proc.stderr.readline, b""):
            line = raw.decode("utf-8", errors="replace").rstrip()
            if line:
                lines.append(line)
                logger.debug(f"[{stage.name}] {line}")
        proc.stderr.close()

    def _record(self, name: str, message: str) -> None:
        with self._lock:
            self._errors.setdefault(name, message)

    def _terminate(self) -> None:
        """Stop every stage that is still running."""
        for proc in self._procs:
            if proc.poll() is None:
                logger.debug(f"Terminating pipeline stage pid {proc.pid}")
                proc.terminate()
        for proc in self._procs:
            if proc.poll() is None:
                try:
                    proc.wait(timeout=TERMINATE_TIMEOUT_SECONDS)
                except subprocess.TimeoutExpired:
                    proc.kill()
                    proc.wait()
            if proc.stdout is not None and not proc.stdout.closed:
                proc.stdout.close()
