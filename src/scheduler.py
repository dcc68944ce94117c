"""
Parallel backup scheduling and result aggregation

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

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from loguru import logger

from .base import Repository
from .local_backup import BackupTarget, JobOutcome, LocalBackup, Status

DEFAULT_JOBS = 4

# Called with (sequence number, total, outcome) in completion order
Reporter = Callable[[int, int, JobOutcome], None]


@dataclass(frozen=True)
class RunSummary:
    outcomes: Tuple[JobOutcome, ...]
    total: int

    @property
    def cloned(self) -> int:
        return self._count(Status.CLONED)

    @property
    def updated(self) -> int:
        return self._count(Status.UPDATED)

    @property
    def failed(self) -> List[JobOutcome]:
        return [o for o in self.outcomes if o.status is Status.FAILED]

    @property
    def success(self) -> bool:
        return not self.failed

    def _count(self, status: Status) -> int:
        return sum(1 for o in self.outcomes if o.status is status)


class ResultAggregator:
    """Thread-safe, append-only log of job outcomes"""

    def __init__(self, total: int, reporter: Optional[Reporter] = None):
        self.total = total
        self.reporter = reporter
        self._lock = threading.Lock()
        self._outcomes: List[JobOutcome] = []
        self._finalized = False

    def record(self, outcome: JobOutcome) -> int:
        """Append an outcome and return its zero-based completion number"""
        with self._lock:
            if self._finalized:
                raise RuntimeError("Cannot record outcomes after finalize()")
            seq = len(self._outcomes)
            self._outcomes.append(outcome)
            # Reported under the lock so progress lines follow completion order
            if self.reporter:
                try:
                    self.reporter(seq, self.total, outcome)
                except Exception:
                    logger.exception(
                        f"[ERROR] Progress reporting failed for {outcome.name_with_owner}"
                    )
            return seq

    def finalize(self) -> RunSummary:
        with self._lock:
            self._finalized = True
            return RunSummary(outcomes=tuple(self._outcomes), total=self.total)


class TargetCursor:
    """Hands out each target index to exactly one worker"""

    def __init__(self, size: int):
        self.size = size
        self._next = 0
        self._lock = threading.Lock()

    def claim(self) -> Optional[int]:
        with self._lock:
            if self._next >= self.size:
                return None
            idx = self._next
            self._next += 1
            return idx


class BackupScheduler:
    def __init__(
        self,
        backup: LocalBackup,
        jobs: int = DEFAULT_JOBS,
        reporter: Optional[Reporter] = None,
    ):
        if jobs < 1:
            raise ValueError(f"jobs must be at least 1, got {jobs}")
        self.backup = backup
        self.jobs = jobs
        self.reporter = reporter

    def run(self, repos: Sequence[Repository]) -> RunSummary:
        """
        Back up every repository using a fixed pool of workers.

        Workers pull the next unclaimed target from a shared cursor until
        none are left, so a slow clone never holds up the rest of the queue.
        A failed target is recorded and the run carries on.

        Args:
            repos: Repositories to back up

        Returns:
            RunSummary with exactly one outcome per repository
        """
        targets = [self.backup.target_for(repo) for repo in repos]
        aggregator = ResultAggregator(len(targets), self.reporter)
        if not targets:
            return aggregator.finalize()

        cursor = TargetCursor(len(targets))
        workers = min(self.jobs, len(targets))

        logger.debug(
            f"[PROCESS] {len(targets)} targets across {workers} worker(s)"
        )

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(self._worker, targets, cursor, aggregator)
                for _ in range(workers)
            ]
            for future in futures:
                future.result()

        return aggregator.finalize()

    def _worker(
        self,
        targets: List[BackupTarget],
        cursor: TargetCursor,
        aggregator: ResultAggregator,
    ) -> None:
        while True:
            idx = cursor.claim()
            if idx is None:
                break
            aggregator.record(self._run_job(targets[idx]))

    def _run_job(self, target: BackupTarget) -> JobOutcome:
        try:
            return self.backup.backup_repository(target)
        except Exception as e:
            logger.error(
                f"[ERROR] Unexpected error backing up {target.repo.name_with_owner}: {e}"
            )
            return JobOutcome(
                target.repo.name_with_owner, Status.FAILED, f"{type(e).__name__}: {e}"
            )
