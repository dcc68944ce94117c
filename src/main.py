#!/usr/bin/env python3
"""
Back up all GitHub repositories of a user and their organizations
"""

import argparse
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich_argparse import RichHelpFormatter
from tqdm import tqdm

from .base import (
    VISIBILITIES,
    ConfigurationError,
    GhSyncError,
    Repository,
    RepositoryDirectory,
)
from .filters import FilterSpec, discover_repos
from .github_manager import GitHubManager
from .local_backup import PROTOCOLS, JobOutcome, LocalBackup, Status, run_cmd
from .scheduler import DEFAULT_JOBS, BackupScheduler, RunSummary
from .token_discovery import get_github_token

console = Console()

# Keys a config file may set, mirroring the command line options
CONFIG_KEYS = (
    "org",
    "orgs_only",
    "personal_only",
    "no_forks",
    "forks_only",
    "no_archived",
    "archived_only",
    "visibility",
    "match",
    "exclude",
    "dest",
    "mirror",
    "jobs",
    "protocol",
)


def setup_logging(
    verbose: bool = False, log_file: str = "ghsync.log", log_dir: str = "logs"
):
    """Setup console and file logging with loguru"""

    # Remove default loguru handler
    logger.remove()

    log_dir_path = Path(log_dir)
    log_dir_path.mkdir(parents=True, exist_ok=True)
    log_file_path = log_dir_path / log_file

    log_level = "DEBUG" if verbose else "INFO"

    console_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<level>{message}</level>"
    )
    logger.add(sys.stdout, format=console_format, level=log_level, colorize=True)

    file_format = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"
    logger.add(
        log_file_path,
        format=file_format,
        level=log_level,
        rotation="10 MB",
        retention="30 days",
        compression="zip",
        encoding="utf-8",
    )

    logger.debug(f"Log file: {log_file_path}")
    return logger


def get_env_default(env_var: str, fallback=None):
    """Get value from environment or .env file"""
    return os.getenv(env_var, fallback)


def load_config_file(path: str) -> Dict[str, Any]:
    """
    Load option defaults from a YAML config file

    Raises:
        ConfigurationError: Missing, unreadable or malformed file
    """
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {path}") from e
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to read config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    config = {k.replace("-", "_"): v for k, v in data.items()}
    unknown = sorted(set(config) - set(CONFIG_KEYS))
    if unknown:
        raise ConfigurationError(
            f"Unknown key(s) in config file {path}: {', '.join(unknown)}"
        )
    return config


class Settings:
    """Effective options: command line, then config file, then environment"""

    def __init__(self, args: argparse.Namespace, config: Optional[Dict[str, Any]] = None):
        config = config or {}

        def pick(name: str, default=None):
            value = getattr(args, name, None)
            if value is not None:
                return value
            return config.get(name, default)

        self.filters = FilterSpec.from_mapping(
            {
                key: pick(key)
                for key in (
                    "org",
                    "orgs_only",
                    "personal_only",
                    "no_forks",
                    "forks_only",
                    "no_archived",
                    "archived_only",
                    "visibility",
                    "match",
                    "exclude",
                )
            }
        ).validate()

        self.dest = Path(str(pick("dest", get_env_default("GHSYNC_DEST", "."))))
        mirror = config.get("mirror", True)
        if not isinstance(mirror, bool):
            raise ConfigurationError(
                f"Invalid mirror setting: {mirror!r} (expected true or false)"
            )
        self.mirror = False if args.no_mirror else mirror
        self.protocol = str(pick("protocol", get_env_default("GHSYNC_PROTOCOL", "ssh")))
        if self.protocol not in PROTOCOLS:
            raise ConfigurationError(
                f"Invalid protocol '{self.protocol}'. Valid values: {', '.join(PROTOCOLS)}"
            )

        jobs = pick("jobs", get_env_default("GHSYNC_JOBS", DEFAULT_JOBS))
        try:
            self.jobs = int(jobs)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid number of jobs: {jobs}") from e
        if self.jobs < 1:
            raise ConfigurationError(f"--jobs must be at least 1, got {self.jobs}")

        self.dry_run = bool(args.dry_run)
        self.list_orgs = bool(args.list_orgs)


class ProgressReporter:
    """Per-job progress lines plus a tqdm bar, fed in completion order"""

    def __init__(self, total: int, disable: bool = False):
        self.pbar = tqdm(total=total, desc="Backing up", unit="repo", disable=disable)
        self.ok = 0
        self.failed = 0

    def __call__(self, seq: int, total: int, outcome: JobOutcome) -> None:
        self.pbar.write(
            f"  [{seq + 1}/{total}] [{outcome.status.icon}] {outcome.name_with_owner}"
        )
        if outcome.status is Status.FAILED:
            self.failed += 1
            logger.error(
                f"[FAIL] {outcome.name_with_owner}: {outcome.first_error_line}"
            )
        else:
            self.ok += 1
        self.pbar.update(1)
        self.pbar.set_postfix({"OK": self.ok, "FAIL": self.failed})

    def close(self) -> None:
        self.pbar.close()


class SyncOrchestrator:
    def __init__(
        self,
        directory: RepositoryDirectory,
        settings: Settings,
        runner: Callable[[List[str]], str] = run_cmd,
    ):
        self.directory = directory
        self.settings = settings
        self.runner = runner
        self.username = directory.get_username()
        logger.info(f"[AUTH] Authenticated as: {self.username}")
        self.orgs = directory.get_orgs()

    def list_orgs(self) -> Dict[str, int]:
        """Print organizations with their repository counts"""
        counts = {}
        for org in sorted(self.orgs, key=str.lower):
            counts[org] = len(self.directory.list_repos(org))

        table = Table(title=f"Orgs ({len(counts)})")
        table.add_column("Org")
        table.add_column("Repos", justify="right")
        for org, count in counts.items():
            table.add_row(escape(org), str(count))
        console.print(table)
        return counts

    def discover(self) -> List[Repository]:
        return discover_repos(
            self.settings.filters, self.directory, self.username, self.orgs
        )

    def dry_run(self, repos: List[Repository]) -> None:
        console.print("\n--- Dry run ---", markup=False, highlight=False)
        total = len(repos)
        for i, repo in enumerate(repos, 1):
            tags = repo.tags()
            suffix = f"  ({', '.join(tags)})" if tags else ""
            console.print(
                f"  [{i}/{total}] {repo.name_with_owner}{suffix}",
                markup=False,
                highlight=False,
            )
        console.print(f"\nTotal: {total} repos", markup=False, highlight=False)

    def run_backup(self, repos: List[Repository]) -> RunSummary:
        """Back up repositories and log the summary"""
        dest = self.settings.dest
        try:
            dest.mkdir(parents=True, exist_ok=True)
            dest = dest.resolve()
        except OSError as e:
            raise ConfigurationError(
                f"Failed to create destination {self.settings.dest}: {e}"
            ) from e

        backup = LocalBackup(
            dest,
            mirror=self.settings.mirror,
            protocol=self.settings.protocol,
            runner=self.runner,
        )
        logger.info(
            f"[START] Backing up to: {dest} (mode: {backup.mode}, workers: {self.settings.jobs})"
        )

        reporter = ProgressReporter(len(repos))
        try:
            summary = BackupScheduler(
                backup, jobs=self.settings.jobs, reporter=reporter
            ).run(repos)
        finally:
            reporter.close()

        log_summary(summary)
        return summary


def log_summary(summary: RunSummary) -> None:
    logger.info("=" * 60)
    logger.info("[SUMMARY] BACKUP SUMMARY")
    logger.info("=" * 60)
    logger.info(f"  Cloned:  {summary.cloned}")
    logger.info(f"  Updated: {summary.updated}")
    logger.info(f"  Failed:  {len(summary.failed)}")

    if summary.failed:
        logger.error("[FAIL] Failed repos:")
        for outcome in summary.failed:
            logger.error(f"  - {outcome.name_with_owner}")
    else:
        logger.info("[COMPLETE] All repositories backed up successfully!")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ghsync",
        description="[bold blue]ghsync[/bold blue] - Back up all GitHub repos (personal + org)",
        epilog="""
[bold green]Examples:[/bold green]
  [yellow]%(prog)s[/yellow] [cyan]--dry-run[/cyan]                          List all repos
  [yellow]%(prog)s[/yellow] [cyan]--dest[/cyan] ~/backup                    Mirror-clone everything
  [yellow]%(prog)s[/yellow] [cyan]--org[/cyan] acme [cyan]--org[/cyan] acme-labs         Only these orgs
  [yellow]%(prog)s[/yellow] [cyan]--orgs-only --no-forks[/cyan]             All orgs, skip forks
  [yellow]%(prog)s[/yellow] [cyan]--personal-only[/cyan]                    Only personal repos
  [yellow]%(prog)s[/yellow] [cyan]--match[/cyan] "api-*"                    Repos matching glob
  [yellow]%(prog)s[/yellow] [cyan]--exclude[/cyan] "poc-*" [cyan]--no-archived[/cyan]    Skip POCs and archived
  [yellow]%(prog)s[/yellow] [cyan]--visibility[/cyan] private               Only private repos
  [yellow]%(prog)s[/yellow] [cyan]--list-orgs[/cyan]                        Show orgs and exit
        """,
        formatter_class=RichHelpFormatter,
    )

    scope = parser.add_argument_group("Scope")
    scope.add_argument(
        "--org",
        action="append",
        metavar="NAME",
        help="Back up specific org(s) only (repeatable)",
    )
    scope.add_argument(
        "--orgs-only",
        action="store_true",
        default=None,
        help="Back up org repos only, skip personal",
    )
    scope.add_argument(
        "--personal-only",
        action="store_true",
        default=None,
        help="Back up personal repos only, skip orgs",
    )
    scope.add_argument("--list-orgs", action="store_true", help="List orgs and exit")

    filters = parser.add_argument_group("Filters")
    forks = filters.add_mutually_exclusive_group()
    forks.add_argument(
        "--no-forks", action="store_true", default=None, help="Exclude forked repos"
    )
    forks.add_argument(
        "--forks-only", action="store_true", default=None, help="Only forked repos"
    )
    archived = filters.add_mutually_exclusive_group()
    archived.add_argument(
        "--no-archived",
        action="store_true",
        default=None,
        help="Exclude archived repos",
    )
    archived.add_argument(
        "--archived-only",
        action="store_true",
        default=None,
        help="Only archived repos",
    )
    filters.add_argument(
        "--visibility", choices=VISIBILITIES, help="Filter by visibility"
    )
    filters.add_argument(
        "--match",
        action="append",
        metavar="GLOB",
        help="Only repos whose name matches the glob pattern (repeatable)",
    )
    filters.add_argument(
        "--exclude",
        action="append",
        metavar="GLOB",
        help="Exclude repos whose name matches the glob pattern (repeatable)",
    )

    clone = parser.add_argument_group("Clone Options")
    clone.add_argument(
        "--dest",
        metavar="DIR",
        help="Destination directory (env: GHSYNC_DEST, default: .)",
    )
    clone.add_argument(
        "--no-mirror",
        action="store_true",
        help="Use regular clone instead of --mirror",
    )
    clone.add_argument(
        "--jobs",
        type=int,
        metavar="N",
        help=f"Parallel workers (env: GHSYNC_JOBS, default: {DEFAULT_JOBS})",
    )
    clone.add_argument(
        "--protocol",
        choices=PROTOCOLS,
        help="Clone transport (env: GHSYNC_PROTOCOL, default: ssh)",
    )
    clone.add_argument(
        "--dry-run", action="store_true", help="List repos without cloning"
    )

    config_group = parser.add_argument_group("Configuration")
    config_group.add_argument(
        "--config",
        default=get_env_default("GHSYNC_CONFIG"),
        metavar="FILE",
        help="YAML file with option defaults (env: GHSYNC_CONFIG)",
    )

    log_group = parser.add_argument_group("Logging Options")
    log_group.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )
    log_group.add_argument(
        "--log-file",
        default=get_env_default("LOG_FILE", "ghsync.log"),
        metavar="FILE",
        help="Log file name (env: LOG_FILE, default: ghsync.log)",
    )

    return parser


def run(
    settings: Settings,
    directory: RepositoryDirectory,
    runner: Callable[[List[str]], str] = run_cmd,
) -> int:
    """Run one listing or backup pass and return the exit status"""
    orchestrator = SyncOrchestrator(directory, settings, runner)

    if settings.list_orgs:
        orchestrator.list_orgs()
        return 0

    repos = orchestrator.discover()
    if not repos:
        logger.warning("[WARN] No repos matched.")
        return 0

    if settings.dry_run:
        orchestrator.dry_run(repos)
        return 0

    summary = orchestrator.run_backup(repos)
    return 0 if summary.success else 1


def main(argv: Optional[List[str]] = None):
    # Load environment variables first (before parsing args)
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        config = load_config_file(args.config) if args.config else {}
        settings = Settings(args, config)

        token = get_github_token(get_env_default("GH_HOST"))
        if not token:
            logger.error(
                "[ERROR] No GitHub token found. Set GITHUB_TOKEN or run: gh auth login"
            )
            sys.exit(1)

        directory = GitHubManager(token, hostname=get_env_default("GH_HOST"))
        status = run(settings, directory)
    except GhSyncError as e:
        for line in str(e).splitlines():
            logger.error(f"[ERROR] {line}")
        sys.exit(1)

    sys.exit(status)


if __name__ == "__main__":
    main()
