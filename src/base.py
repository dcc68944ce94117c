"""
Base classes for repository discovery

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

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Tuple

VISIBILITIES = ("public", "private", "internal")


class GhSyncError(Exception):
    """Base class for errors that abort a run"""


class ConfigurationError(GhSyncError):
    pass


class AuthenticationError(GhSyncError):
    pass


class DiscoveryError(GhSyncError):
    pass


def split_name_with_owner(name_with_owner: str) -> Tuple[str, str]:
    """Split 'owner/name' at the first separator, owner is '' when missing"""
    if "/" not in name_with_owner:
        return "", name_with_owner
    owner, name = name_with_owner.split("/", 1)
    return owner, name


@dataclass(frozen=True)
class Repository:
    name_with_owner: str
    ssh_url: str
    is_fork: bool
    is_archived: bool
    visibility: str
    clone_url: Optional[str] = None

    @property
    def owner(self) -> str:
        return split_name_with_owner(self.name_with_owner)[0]

    @property
    def name(self) -> str:
        return split_name_with_owner(self.name_with_owner)[1]

    def tags(self) -> List[str]:
        """Short descriptive tags used in listings"""
        tags = []
        if self.is_fork:
            tags.append("fork")
        if self.is_archived:
            tags.append("archived")
        if self.visibility:
            tags.append(self.visibility.lower())
        return tags


class RepositoryDirectory(ABC):
    """Source of owners and their repositories"""

    @abstractmethod
    def get_username(self) -> str:
        pass

    @abstractmethod
    def get_orgs(self) -> List[str]:
        pass

    @abstractmethod
    def list_repos(self, owner: str) -> List[Repository]:
        pass
