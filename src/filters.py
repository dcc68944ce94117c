"""
Repository discovery and filtering

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

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from loguru import logger

from .base import (
    VISIBILITIES,
    ConfigurationError,
    Repository,
    RepositoryDirectory,
)
from .patterns import matches_any


class UnknownOwnerError(ConfigurationError):
    def __init__(self, invalid: List[str], known: List[str]):
        self.invalid = list(invalid)
        self.known = list(known)
        super().__init__(
            f"not a member of org(s): {', '.join(self.invalid)}\n"
            f"Your orgs: {', '.join(self.known)}"
        )


def _as_tuple(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


@dataclass(frozen=True)
class FilterSpec:
    orgs: Tuple[str, ...] = ()
    orgs_only: bool = False
    personal_only: bool = False
    no_forks: bool = False
    forks_only: bool = False
    no_archived: bool = False
    archived_only: bool = False
    visibility: Optional[str] = None
    patterns: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "FilterSpec":
        """Build a spec from CLI/config style keys (org, match, exclude, ...)"""
        return cls(
            orgs=_as_tuple(values.get("org")),
            orgs_only=bool(values.get("orgs_only", False)),
            personal_only=bool(values.get("personal_only", False)),
            no_forks=bool(values.get("no_forks", False)),
            forks_only=bool(values.get("forks_only", False)),
            no_archived=bool(values.get("no_archived", False)),
            archived_only=bool(values.get("archived_only", False)),
            visibility=values.get("visibility") or None,
            patterns=_as_tuple(values.get("match")),
            exclude=_as_tuple(values.get("exclude")),
        )

    def validate(self) -> "FilterSpec":
        conflicts = [
            ("orgs_only", "personal_only"),
            ("personal_only", "orgs"),
            ("no_forks", "forks_only"),
            ("no_archived", "archived_only"),
        ]
        for first, second in conflicts:
            if getattr(self, first) and getattr(self, second):
                raise ConfigurationError(
                    f"{_flag(first)} cannot be used with {_flag(second)}"
                )

        if self.visibility and self.visibility.lower() not in VISIBILITIES:
            raise ConfigurationError(
                f"Invalid visibility '{self.visibility}'. "
                f"Valid values: {', '.join(VISIBILITIES)}"
            )
        return self


def _flag(field_name: str) -> str:
    if field_name == "orgs":
        return "--org"
    return "--" + field_name.replace("_", "-")


def resolve_owners(spec: FilterSpec, username: str, orgs: List[str]) -> List[str]:
    """Work out which owners to scan"""
    if spec.orgs:
        known = {o.lower() for o in orgs}
        invalid = [o for o in spec.orgs if o.lower() not in known]
        if invalid:
            raise UnknownOwnerError(invalid, orgs)
        wanted = {o.lower() for o in spec.orgs}
        return [o for o in orgs if o.lower() in wanted]

    if spec.orgs_only:
        return list(orgs)
    if spec.personal_only:
        return [username]
    return [username] + list(orgs)


def merge_repositories(batches: Iterable[Iterable[Repository]]) -> List[Repository]:
    """Merge per-owner listings, the first record seen for an identifier wins"""
    seen: Dict[str, Repository] = {}
    for batch in batches:
        for repo in batch:
            seen.setdefault(repo.name_with_owner, repo)
    return list(seen.values())


def sort_repositories(repos: Iterable[Repository]) -> List[Repository]:
    return sorted(repos, key=lambda r: r.name_with_owner.lower())


class FilterPipeline:
    """Ordered retain passes over a repository collection"""

    def __init__(self, spec: FilterSpec):
        self.spec = spec
        self.excluded: Dict[str, int] = {}

    def stages(self) -> List[Tuple[str, Callable[[Repository], bool]]]:
        spec = self.spec
        stages = []

        if spec.no_forks:
            stages.append(("forks", lambda r: not r.is_fork))
        elif spec.forks_only:
            stages.append(("non-forks", lambda r: r.is_fork))

        if spec.no_archived:
            stages.append(("archived", lambda r: not r.is_archived))
        elif spec.archived_only:
            stages.append(("non-archived", lambda r: r.is_archived))

        if spec.visibility:
            wanted = spec.visibility.lower()
            stages.append(
                ("visibility", lambda r: (r.visibility or "").lower() == wanted)
            )

        if spec.patterns:
            stages.append(
                ("not matching --match", lambda r: matches_any(spec.patterns, r.name))
            )

        if spec.exclude:
            stages.append(
                ("matching --exclude", lambda r: not matches_any(spec.exclude, r.name))
            )

        return stages

    def apply(self, repos: Iterable[Repository]) -> List[Repository]:
        current = list(repos)
        self.excluded = {}

        for stage, keep in self.stages():
            before = len(current)
            current = [r for r in current if keep(r)]
            self.excluded[stage] = before - len(current)

        return sort_repositories(current)


def discover_repos(
    spec: FilterSpec,
    directory: RepositoryDirectory,
    username: str,
    orgs: List[str],
) -> List[Repository]:
    """
    Collect and filter the repositories to back up.

    Args:
        spec: Filter configuration
        directory: Repository directory service
        username: Authenticated user
        orgs: Organizations the user belongs to

    Returns:
        Filtered repositories sorted by owner/name, ignoring case

    Raises:
        UnknownOwnerError: An explicit owner is not one of the user's orgs
    """
    owners = resolve_owners(spec, username, orgs)
    logger.info(f"[DISCOVER] Scanning: {', '.join(owners)} ({len(owners)} owner(s))")

    batches = []
    for owner in owners:
        repos = directory.list_repos(owner)
        logger.debug(f"[DISCOVER] {owner}: {len(repos)} repositories")
        batches.append(repos)

    merged = merge_repositories(batches)

    pipeline = FilterPipeline(spec)
    repos = pipeline.apply(merged)

    for stage, count in pipeline.excluded.items():
        if count > 0:
            logger.info(f"[FILTER] Excluded {count} repo(s) ({stage})")

    logger.info(f"[DISCOVER] Found {len(repos)} repo(s)")
    return repos
