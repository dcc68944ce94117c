"""
GitHub repository directory

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

from itertools import islice
from typing import List, Optional

from github import Auth, Github, GithubException
from loguru import logger
from requests.exceptions import RequestException

from .base import AuthenticationError, DiscoveryError, Repository, RepositoryDirectory

REPO_LIST_LIMIT = 500
DEFAULT_HOST = "github.com"


def api_base_url(hostname: Optional[str]) -> Optional[str]:
    """REST endpoint for a GitHub Enterprise host, None for github.com"""
    if not hostname or hostname.lower() == DEFAULT_HOST:
        return None
    return f"https://{hostname}/api/v3"


class GitHubManager(RepositoryDirectory):
    def __init__(
        self,
        token: str,
        hostname: Optional[str] = None,
        client: Optional[Github] = None,
    ):
        self.token = token
        self.hostname = hostname or DEFAULT_HOST
        if client is None:
            base_url = api_base_url(hostname)
            if base_url:
                client = Github(auth=Auth.Token(token), base_url=base_url)
            else:
                client = Github(auth=Auth.Token(token))
        self.client = client

        # Validate authentication immediately by accessing user data
        try:
            self.user = self.client.get_user()
            # Force authentication check by accessing a property
            self.login = self.user.login
            logger.debug(f"GitHub authentication successful for user: {self.login}")
        except Exception as e:
            error_msg = str(e)
            if "401" in error_msg or "Bad credentials" in error_msg:
                logger.error("GitHub authentication failed: Invalid or expired token")
                logger.error("Please check GITHUB_TOKEN or run: gh auth login")
            else:
                logger.error(f"GitHub authentication failed: {e}")
            raise AuthenticationError(f"Invalid GitHub token: {e}") from e

        self._orgs: Optional[List[str]] = None

    def get_username(self) -> str:
        return self.login

    def get_orgs(self) -> List[str]:
        try:
            return [org.login for org in self.user.get_orgs()]
        except (GithubException, RequestException) as e:
            raise DiscoveryError(f"Failed to list organizations: {e}") from e

    def list_repos(self, owner: str, limit: int = REPO_LIST_LIMIT) -> List[Repository]:
        """Fetch the repositories owned by a user or organization"""
        try:
            if owner.lower() == self.login.lower():
                # Authenticated listing includes the user's private repositories
                listing = self.user.get_repos(affiliation="owner")
            elif owner.lower() in (o.lower() for o in self._org_logins()):
                listing = self.client.get_organization(owner).get_repos()
            else:
                listing = self.client.get_user(owner).get_repos()

            return [self._to_repository(repo) for repo in islice(listing, limit)]
        except (GithubException, RequestException) as e:
            raise DiscoveryError(f"Failed to list repositories for {owner}: {e}") from e

    def _org_logins(self) -> List[str]:
        if self._orgs is None:
            self._orgs = self.get_orgs()
        return self._orgs

    @staticmethod
    def _to_repository(repo) -> Repository:
        visibility = getattr(repo, "visibility", None)
        if not visibility:
            visibility = "private" if repo.private else "public"

        return Repository(
            name_with_owner=repo.full_name,
            ssh_url=repo.ssh_url,
            clone_url=repo.clone_url,
            is_fork=repo.fork,
            is_archived=repo.archived,
            visibility=visibility.lower(),
        )
