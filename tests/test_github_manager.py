"""
Tests for GitHubManager

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

from types import SimpleNamespace

import pytest
from github import GithubException

from src.base import AuthenticationError, DiscoveryError
from src.github_manager import GitHubManager, api_base_url


def api_repo(full_name, fork=False, archived=False, private=False, visibility=None):
    return SimpleNamespace(
        full_name=full_name,
        ssh_url=f"git@github.com:{full_name}.git",
        clone_url=f"https://github.com/{full_name}.git",
        fork=fork,
        archived=archived,
        private=private,
        visibility=visibility,
    )


class FakeUser:
    def __init__(self, login, repos=None, orgs=None):
        self.login = login
        self.repos = repos or []
        self.orgs = orgs or []
        self.repo_kwargs = None

    def get_repos(self, **kwargs):
        self.repo_kwargs = kwargs
        return iter(self.repos)

    def get_orgs(self):
        return [SimpleNamespace(login=o) for o in self.orgs]


class FakeGithub:
    """Minimal stand-in for github.Github"""

    def __init__(self, me, org_repos=None, users=None, fail=False):
        self.me = me
        self.org_repos = org_repos or {}
        self.users = users or {}
        self.fail = fail

    def get_user(self, login=None):
        if login is None:
            return self.me
        return self.users[login]

    def get_organization(self, login):
        if self.fail:
            raise GithubException(500, {"message": "server error"}, None)
        # Organization logins are case-insensitive on GitHub
        repos = {k.lower(): v for k, v in self.org_repos.items()}[login.lower()]
        return SimpleNamespace(get_repos=lambda: iter(repos))


class BrokenUser:
    @property
    def login(self):
        raise GithubException(401, {"message": "Bad credentials"}, None)


class TestGitHubManagerInit:
    """Tests for GitHubManager authentication"""

    def test_authenticates(self):
        """Test login is resolved on construction"""
        manager = GitHubManager("token", client=FakeGithub(FakeUser("octo")))
        assert manager.get_username() == "octo"

    def test_invalid_token(self):
        """Test bad credentials raise AuthenticationError"""
        client = FakeGithub(BrokenUser())
        with pytest.raises(AuthenticationError) as exc_info:
            GitHubManager("bad", client=client)
        assert "Invalid GitHub token" in str(exc_info.value)


class TestGitHubManagerListing:
    """Tests for owner and repository listing"""

    def make_manager(self, **kwargs):
        me = FakeUser(
            "octo",
            repos=[api_repo("octo/dotfiles", private=True)],
            orgs=["Acme", "globex"],
        )
        client = FakeGithub(
            me,
            org_repos={
                "Acme": [
                    api_repo("Acme/api", visibility="INTERNAL"),
                    api_repo("Acme/fork", fork=True, archived=True),
                ]
            },
            users={"someone": FakeUser("someone", repos=[api_repo("someone/x")])},
            **kwargs,
        )
        return GitHubManager("token", client=client), me

    def test_get_orgs(self):
        """Test organization logins"""
        manager, _ = self.make_manager()
        assert manager.get_orgs() == ["Acme", "globex"]

    def test_personal_repos_use_owner_affiliation(self):
        """Test the user's own listing includes private repos"""
        manager, me = self.make_manager()
        repos = manager.list_repos("OCTO")

        assert me.repo_kwargs == {"affiliation": "owner"}
        assert repos[0].name_with_owner == "octo/dotfiles"
        assert repos[0].visibility == "private"

    def test_org_repos(self):
        """Test organization repositories are converted"""
        manager, _ = self.make_manager()
        repos = manager.list_repos("acme")

        assert [r.name_with_owner for r in repos] == ["Acme/api", "Acme/fork"]
        assert repos[0].visibility == "internal"
        assert repos[0].ssh_url == "git@github.com:Acme/api.git"
        assert repos[0].clone_url == "https://github.com/Acme/api.git"
        assert repos[1].is_fork is True
        assert repos[1].is_archived is True
        assert repos[1].visibility == "public"

    def test_other_user_repos(self):
        """Test owners outside the org list are looked up as users"""
        manager, _ = self.make_manager()
        assert [r.name for r in manager.list_repos("someone")] == ["x"]

    def test_limit(self):
        """Test at most limit repositories are returned"""
        manager, _ = self.make_manager()
        assert len(manager.list_repos("Acme", limit=1)) == 1

    def test_api_failure_is_discovery_error(self):
        """Test API errors become DiscoveryError"""
        manager, _ = self.make_manager(fail=True)
        with pytest.raises(DiscoveryError):
            manager.list_repos("Acme")


class TestApiBaseUrl:
    """Tests for enterprise host handling"""

    def test_github_com(self):
        """Test public GitHub uses the library default"""
        assert api_base_url(None) is None
        assert api_base_url("GitHub.com") is None

    def test_enterprise_host(self):
        """Test enterprise hosts use the v3 REST path"""
        assert api_base_url("git.example.com") == "https://git.example.com/api/v3"
