# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/system/execution.py

"""Thin wrapper around subprocess for one-shot external commands."""

import os
import shutil
import subprocess
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from lvmrestic.system.exceptions import AdapterError, MissingDependency


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


def _failure_message(prefix: str, result, command: list[str]) -> str:
    stderr = (result.stderr or "").strip()
    if stderr:
        return f"{prefix}: {stderr}"
    return f"Command failed with exit code {result.returncode}: {' '.join(command)}"


class CommandExecutor:
    """Run commands and normalize their results.

    All methods return a CommandResult. With check=True a non-zero exit
    raises AdapterError carrying the command, exit code and stderr.
    """

    @staticmethod
    def run_local(cmd: list[str], timeout: Optional[float] = None, check: bool = True,
                  env: Optional[dict[str, str]] = None, cwd: Optional[str] = None,
                  input: Optional[str] = None) -> CommandResult:
        kwargs = {}
        if input is not None:
            kwargs["input"] = input
        if env is not None:
            kwargs["env"] = env
        if cwd is not None:
            kwargs["cwd"] = cwd
        logger.debug(f"Running: {' '.join(cmd)}")
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout, **kwargs)
        if check and result.returncode != 0:
            raise AdapterError(
                _failure_message("Local command failed", result, cmd),
                command=cmd, returncode=result.returncode, stderr=result.stderr,
            )
        return CommandResult(result.returncode, result.stdout or "", result.stderr or "")

    @staticmethod
    def run_sudo(cmd: list[str], check: bool = True) -> CommandResult:
        """Run a privileged command, adding sudo only when not already root."""
        full_cmd = cmd if os.geteuid() == 0 else ["sudo"] + cmd
        logger.debug(f"Running: {' '.join(full_cmd)}")
        result = subprocess.run(full_cmd, capture_output=True, text=True)
        if check and result.returncode != 0:
            raise AdapterError(
                _failure_message("Sudo command failed", result, full_cmd),
                command=full_cmd, returncode=result.returncode, stderr=result.stderr,
            )
        return CommandResult(result.returncode, result.stdout or "", result.stderr or "")

    @staticmethod
    def require(tool: str) -> str:
        """Return the absolute path of tool, or raise MissingDependency."""
        path = shutil.which(tool)
        if path is None:
            raise MissingDependency(f"Please install {tool}", tool=tool)
        return path
