"""
Auto-discovery of the GitHub token from standard locations

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

import os
import subprocess
from typing import Optional

from loguru import logger

TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")


def get_github_token(hostname: Optional[str] = None) -> Optional[str]:
    """
    Discover a GitHub token.

    Priority:
    1. GITHUB_TOKEN, then GH_TOKEN environment variables
    2. Token stored by the gh CLI (`gh auth token`), for `hostname`
       when one is given

    Returns:
        GitHub token or None if not found
    """
    for var in TOKEN_ENV_VARS:
        token = os.getenv(var, "").strip()
        if token:
            logger.debug(f"[TOKEN] GitHub token found in {var} env var")
            return token

    cmd = ["gh", "auth", "token"]
    if hostname:
        cmd += ["--hostname", hostname]

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=5)
    except (subprocess.TimeoutExpired, FileNotFoundError):
        logger.debug("[TOKEN] gh CLI not available")
        return None

    token = result.stdout.strip()
    if result.returncode == 0 and token:
        logger.info("[TOKEN] GitHub token discovered from gh CLI")
        return token

    return None
