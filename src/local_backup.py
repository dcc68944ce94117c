"""
Local filesystem backup functionality

Copyright 2025 HyperSec

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Union

from loguru import logger

from .base import Repository

PROTOCOLS = ("ssh", "https")


class CommandError(Exception):
    """An external command could not be run or exited non-zero"""

    def __init__(self, cmd: List[str], stderr: str = ""):
        self.cmd = list(cmd)
        self.stderr = stderr
        message = f"command failed: {' '.join(self.cmd)}"
        if stderr:
            message += f"\n{stderr}"
        super().__init__(message)


def run_cmd(cmd: List[str]) -> str:
    """
    Run an external command and capture its output.

    Args:
        cmd: Argument vector, cmd[0] is the executable

    Returns:
        Trimmed standard output

    Raises:
        CommandError: Spawn failure or non-zero exit, carrying stderr
    """
    try:
        result = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            text=True,
        )
    except OSError as e:
        raise CommandError(cmd, f"failed to execute: {cmd[0]}: {e}") from e

    if result.returncode != 0:
        raise CommandError(cmd, (result.stderr or "").strip())

    return (result.stdout or "").strip()


class Status(Enum):
    CLONED = "cloned"
    UPDATED = "updated"
    FAILED = "failed"

    @property
    def icon(self) -> str:
        return {"cloned": "+", "updated": "~", "failed": "!"}[self.value]


@dataclass(frozen=True)
class JobOutcome:
    name_with_owner: str
    status: Status
    error: Optional[str] = None

    @property
    def first_error_line(self) -> str:
        if not self.error:
            return ""
        lines = self.error.splitlines()
        return lines[0] if lines else ""


@dataclass(frozen=True)
class BackupTarget:
    repo: Repository
    path: Path
    mirror: bool


class LocalBackup:
    def __init__(
        self,
        dest: Union[str, Path],
        mirror: bool = True,
        protocol: str = "ssh",
        runner: Callable[[List[str]], str] = run_cmd,
    ):
        """
        Initialize local backup manager
        Args:
            dest: Destination root, one directory per owner below it
            mirror: Bare mirror clones instead of working copies
            protocol: 'ssh' or 'https' transport for new clones
            runner: Execution function for git commands
        """
        if protocol not in PROTOCOLS:
            raise ValueError(
                f"Invalid protocol '{protocol}'. Valid values: {', '.join(PROTOCOLS)}"
            )
        self.dest = Path(dest)
        self.mirror = mirror
        self.protocol = protocol
        self.runner = runner

    @property
    def mode(self) -> str:
        return "mirror" if self.mirror else "regular"

    def target_for(self, repo: Repository) -> BackupTarget:
        owner, name = repo.owner, repo.name
        path = self.dest / owner / name if owner else self.dest / name
        return BackupTarget(repo=repo, path=path, mirror=self.mirror)

    def clone_address(self, repo: Repository) -> str:
        if self.protocol == "https" and repo.clone_url:
            return repo.clone_url
        return repo.ssh_url

    def backup_repository(self, target: BackupTarget) -> JobOutcome:
        """
        Clone a new repository or update an existing copy
        Args:
            target: Repository bound to its destination path
        Returns:
            JobOutcome: Cloned, Updated or Failed, never raises
        """
        nwo = target.repo.name_with_owner
        try:
            if target.path.exists():
                self._update(target)
                status = Status.UPDATED
            else:
                self._clone(target)
                status = Status.CLONED
        except CommandError as e:
            return JobOutcome(nwo, Status.FAILED, e.stderr or str(e))
        except Exception as e:
            return JobOutcome(nwo, Status.FAILED, f"{type(e).__name__}: {e}")

        logger.debug(f"[BACKUP] {status.value.capitalize()} {nwo} at {target.path}")
        return JobOutcome(nwo, status)

    def _update(self, target: BackupTarget) -> None:
        if target.mirror:
            cmd = ["git", "-C", str(target.path), "remote", "update"]
        else:
            cmd = ["git", "-C", str(target.path), "fetch", "--all"]
        self.runner(cmd)

    def _clone(self, target: BackupTarget) -> None:
        target.path.parent.mkdir(parents=True, exist_ok=True)

        cmd = ["git", "clone", "--quiet"]
        if target.mirror:
            cmd.append("--mirror")
        cmd += [self.clone_address(target.repo), str(target.path)]
        self.runner(cmd)
