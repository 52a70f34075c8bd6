# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/system/locking.py

"""
Host-level coordination for lvmrestic runs.

restic's own repository locks are not trusted for fully concurrent
invocations, so before each volume we wait until no other restic process
runs on the host. This is coarse mutual exclusion over the whole host, not
per volume.

Signals are handled by InterruptGuard: SIGINT and SIGTERM become an
Interrupted exception, which unwinds through the snapshot and mount context
managers, and the guard sweeps every leftover snapshot on the way out.
"""

import os
import signal
import time
from typing import Callable, Optional

import psutil
from loguru import logger

from lvmrestic.core.retry import RetryConfig, calculate_delay
from lvmrestic.system.exceptions import GateTimeoutError, Interrupted


def find_processes(name: str) -> list[int]:
    """PIDs of processes named exactly name, excluding our own descendants."""
    own = {os.getpid()}
    try:
        own.update(child.pid for child in psutil.Process().children(recursive=True))
    except psutil.Error:
        pass
    pids = []
    for proc in psutil.process_iter(attrs=["pid", "name"]):
        if proc.info["name"] == name and proc.info["pid"] not in own:
            pids.append(proc.info["pid"])
    return pids


class ProcessGate:
    """Block while another instance of the backup client is running.

    The pause between polls starts at poll_interval and grows by backoff
    per poll up to max_poll_interval. The last pause is shortened so the
    total wait never exceeds max_wait.

    Usage:
        gate = ProcessGate("restic", poll_interval=60, max_wait=6 * 3600, backoff=2.0)
        gate.wait_until_clear()
    """

    DEFAULT_POLL_INTERVAL = 60.0

    def __init__(self, process_name: str = "restic", poll_interval: float = DEFAULT_POLL_INTERVAL,
                 max_wait: Optional[float] = None, backoff: float = 1.0,
                 max_poll_interval: Optional[float] = None,
                 process_lister: Callable[[str], list[int]] = find_processes,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.process_name = process_name
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self.schedule = RetryConfig(base_delay=poll_interval,
                                    max_delay=max(poll_interval, max_poll_interval or poll_interval),
                                    exponential_base=backoff)
        self._list = process_lister
        self._sleep = sleep
        self._clock = clock

    def other_instances(self) -> list[int]:
        return self._list(self.process_name)

    def wait_until_clear(self) -> float:
        """Wait for other instances to finish. Returns the seconds waited.

        Raises:
            GateTimeoutError: If they are still running after max_wait seconds
        """
        start = self._clock()
        polls = 0
        while True:
            pids = self.other_instances()
            if not pids:
                return self._clock() - start

            waited = self._clock() - start
            if self.max_wait is not None and waited >= self.max_wait:
                raise GateTimeoutError(
                    f"{self.process_name} still running after {waited:.0f}s (pids {pids})",
                    waited_seconds=waited, pids=pids,
                )
            logger.warning(f"Waiting for running {self.process_name} processes to finish: {pids}")
            polls += 1
            delay = calculate_delay(polls, self.schedule)
            if self.max_wait is not None:
                delay = max(0.0, min(delay, self.max_wait - waited))
            self._sleep(delay)


class InterruptGuard:
    """Turn SIGINT/SIGTERM into Interrupted and run cleanup exactly once.

    Install before the first snapshot is created. Cleanup runs when the
    guard exits, whether the block finished, failed, or was interrupted,
    so a normal run gets the same final sweep as an aborted one.

    Usage:
        with InterruptGuard(cleanup=snapshots.sweep):
            ...
    """

    SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(self, cleanup: Callable[[], object]) -> None:
        self.cleanup = cleanup
        self.received: Optional[int] = None
        self._previous: dict[int, object] = {}
        self._cleaned = False

    def __enter__(self) -> "InterruptGuard":
        for signum in self.SIGNALS:
            self._previous[signum] = signal.signal(signum, self._handle)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            self.run_cleanup()
        finally:
            self._restore()

    def _handle(self, signum, frame) -> None:
        if self.received is not None:
            # Second signal while unwinding: keep going with the cleanup
            logger.warning(f"Signal {signum} received again, still cleaning up")
            return
        self.received = signum
        logger.error(f"Signal {signum} received, cleaning up")
        raise Interrupted(signum)

    def run_cleanup(self) -> None:
        if self._cleaned:
            return
        self._cleaned = True
        self.cleanup()

    def _restore(self) -> None:
        for signum, handler in self._previous.items():
            signal.signal(signum, handler)
        self._previous = {}
