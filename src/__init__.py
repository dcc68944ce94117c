"""
ghsync - GitHub repository backup tool

Discovers the repositories of a GitHub user and their organizations,
filters them with glob and flag rules, and clones or updates them to
local storage in parallel.

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

__version__ = "1.0.0"
__author__ = "Derek"
__license__ = "Apache-2.0"
__description__ = "Back up all GitHub repositories of a user and their organizations"

from .base import Repository, RepositoryDirectory
from .filters import FilterPipeline, FilterSpec, discover_repos
from .github_manager import GitHubManager
from .local_backup import LocalBackup
from .main import main
from .patterns import glob_match
from .scheduler import BackupScheduler, ResultAggregator, RunSummary

__all__ = [
    "Repository",
    "RepositoryDirectory",
    "FilterPipeline",
    "FilterSpec",
    "discover_repos",
    "GitHubManager",
    "LocalBackup",
    "glob_match",
    "BackupScheduler",
    "ResultAggregator",
    "RunSummary",
    "main",
]
