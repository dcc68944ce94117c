"""
Case-insensitive shell-style name matching

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

from typing import Iterable


def glob_match(pattern: str, text: str) -> bool:
    """
    Match a name against a glob pattern, ignoring case.

    Supports '*' (any run of characters, including none) and '?' (exactly
    one character). Every other character is literal, so '[' and '{' have
    no special meaning unlike fnmatch.

    Args:
        pattern: Glob pattern
        text: Name to test

    Returns:
        True if the whole name matches the pattern
    """
    p = pattern.lower()
    t = text.lower()

    # matched[i][j]: p[i:] matches t[j:], filled from the end so every
    # backtracking branch of a '*' is looked up instead of re-explored
    matched = [[False] * (len(t) + 1) for _ in range(len(p) + 1)]
    matched[len(p)][len(t)] = True

    for i in range(len(p) - 1, -1, -1):
        for j in range(len(t), -1, -1):
            if p[i] == "*":
                matched[i][j] = matched[i + 1][j] or (
                    j < len(t) and matched[i][j + 1]
                )
            elif j < len(t) and (p[i] == "?" or p[i] == t[j]):
                matched[i][j] = matched[i + 1][j + 1]

    return matched[0][0]


def matches_any(patterns: Iterable[str], text: str) -> bool:
    return any(glob_match(pattern, text) for pattern in patterns)
