# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/system/exceptions.py

"""
lvmrestic exception classes.

Errors are grouped by how far they unwind: pre-flight errors abort the run
before anything is mutated, per-target errors abort one volume after its
snapshot has been cleaned up, and telemetry errors never leave the reporter.
"""

INTERRUPTED_EXIT_CODE = 130


class LvmResticError(Exception):
    """Base exception for all lvmrestic errors."""
    pass


class ConfigurationError(LvmResticError):
    """Raised when repository or application configuration is missing or invalid."""
    pass


class MissingDependency(LvmResticError):
    """Raised when a required external tool is not installed."""

    def __init__(self, message: str, tool: str = None):
        self.tool = tool
        super().__init__(message)


# === EXTERNAL COMMAND ERRORS ===

class AdapterError(LvmResticError):
    """An invocation of LVM, restic or another external command failed."""

    def __init__(self, message: str, command: list[str] = None,
                 returncode: int = None, stderr: str = None):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


class LVMError(AdapterError):
    """LVM rejected a request (snapshot or volume creation)."""
    pass


class InsufficientSpaceError(LVMError):
    """The volume group has no room for the requested snapshot or volume."""
    pass


# === NOT FOUND ===

class NotFound(LvmResticError):
    """Base class for a named resource that does not exist."""

    def __init__(self, message: str, names: list[str] = None):
        self.names = names or []
        super().__init__(message)


class VolumeNotFoundError(NotFound):
    """One or more logical volumes could not be resolved."""
    pass


class EntryNotFoundError(NotFound):
    """No repository entry exists for a volume."""
    pass


# === TRANSFER ERRORS ===

class PipelineError(LvmResticError):
    """At least one stage of a multi-stage transfer failed."""

    def __init__(self, message: str, failed_stages: list[str] = None):
        self.failed_stages = failed_stages or []
        super().__init__(message)


class RestoreAbortedError(LvmResticError):
    """The operator declined to restore into an existing volume."""
    pass


# === CONCURRENCY ===

class GateTimeoutError(LvmResticError):
    """Other backup processes kept running past the configured wait bound."""

    def __init__(self, message: str, waited_seconds: float = None, pids: list[int] = None):
        self.waited_seconds = waited_seconds
        self.pids = pids or []
        super().__init__(message)


class Interrupted(LvmResticError):
    """Raised from the signal handler when SIGINT or SIGTERM arrives."""

    exit_code = INTERRUPTED_EXIT_CODE

    def __init__(self, signum: int):
        self.signum = signum
        super().__init__(f"Interrupted by signal {signum}")


# === TELEMETRY ===

class TelemetryError(LvmResticError):
    """Metrics extraction or delivery failed. Logged, never fatal."""
    pass
