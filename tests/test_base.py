"""
Tests for base module

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

import dataclasses

import pytest

from src.base import Repository, split_name_with_owner


def make_repo(nwo="acme/api", **kwargs) -> Repository:
    values = dict(
        name_with_owner=nwo,
        ssh_url=f"git@github.com:{nwo}.git",
        is_fork=False,
        is_archived=False,
        visibility="private",
    )
    values.update(kwargs)
    return Repository(**values)


class TestRepository:
    """Tests for Repository dataclass"""

    def test_repository_creation(self):
        """Test basic repository creation"""
        repo = make_repo()

        assert repo.name_with_owner == "acme/api"
        assert repo.ssh_url == "git@github.com:acme/api.git"
        assert repo.is_fork is False
        assert repo.is_archived is False
        assert repo.visibility == "private"
        assert repo.clone_url is None

    def test_owner_and_name(self):
        """Test owner and name are split from the qualified identifier"""
        repo = make_repo("acme/api-gateway")
        assert repo.owner == "acme"
        assert repo.name == "api-gateway"

    def test_name_without_owner(self):
        """Test identifier without separator has an empty owner"""
        repo = make_repo("lonely")
        assert repo.owner == ""
        assert repo.name == "lonely"

    def test_repository_is_immutable(self):
        """Test records cannot be changed after creation"""
        repo = make_repo()
        with pytest.raises(dataclasses.FrozenInstanceError):
            repo.is_fork = True

    def test_repository_equality(self):
        """Test that two repositories with same values are equal"""
        assert make_repo() == make_repo()
        assert make_repo() != make_repo(is_fork=True)

    def test_tags(self):
        """Test listing tags for fork, archived and visibility"""
        repo = make_repo(is_fork=True, is_archived=True, visibility="INTERNAL")
        assert repo.tags() == ["fork", "archived", "internal"]
        assert make_repo(visibility="").tags() == []


class TestSplitNameWithOwner:
    """Tests for split_name_with_owner"""

    def test_splits_at_first_separator(self):
        """Test only the first separator is used"""
        assert split_name_with_owner("org/group/repo") == ("org", "group/repo")

    def test_empty_identifier(self):
        """Test empty identifier"""
        assert split_name_with_owner("") == ("", "")
