"""Configuration constants and CLI parsing for the issue/project link report."""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.secrets import load_local_secrets

from .errors import ConfigError

USER_AGENT = "issue-projects-report/1.0"
DEFAULT_API_URL = "https://api.github.com"
DEFAULT_OUTPUT_FILE = "output.csv"
PER_PAGE = 100
REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "90"))
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
BACKOFF_BASE_SEC = 2
MAX_WAIT_ON_RATE_LIMIT = int(os.getenv("MAX_WAIT_ON_RATE_LIMIT", "0"))  # 0 = no cap
MAX_PAGES = int(os.getenv("MAX_PAGES", "1000"))


@dataclass(frozen=True)
class ReportSettings:
    """Resolved runtime settings for one report run."""

    org_name: str
    repos_file: Path
    output_file: Path
    api_url: str
    github_token: Optional[str]
    app_id: Optional[str]
    private_key: Optional[str]
    installation_id: Optional[str]
    max_pages: int
    debug: bool

    @property
    def graphql_url(self) -> str:
        """GraphQL endpoint for `api_url`, handling GitHub Enterprise's /api/v3 form."""
        base = self.api_url.rstrip("/")
        if base.endswith("/api/v3"):
            return base[: -len("/v3")] + "/graphql"
        return f"{base}/graphql"


def build_arg_parser() -> argparse.ArgumentParser:
    """Return the CLI parser used by the report entry point."""

    parser = argparse.ArgumentParser(
        description=(
            "Count issues linked to GitHub Projects, distinct projects referenced by "
            "issues, and projects linked to each repository; write the result as CSV."
        ),
    )
    parser.add_argument("--org-name")
    parser.add_argument("--repos-file", help="file with one repository name per line")
    parser.add_argument("--output-file")
    parser.add_argument("--api-url")
    parser.add_argument("--github-token")
    parser.add_argument("--github-app-id")
    parser.add_argument("--github-private-key", help="PEM text or a path to a PEM file")
    parser.add_argument("--github-installation-id")
    parser.add_argument("--max-pages", type=int)
    parser.add_argument("--debug", action="store_true", default=None)
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments; accepts argv overrides for testing."""

    parser = build_arg_parser()
    return parser.parse_args(argv)


def _action_input(name: str) -> Optional[str]:
    """Read a GitHub Actions style input (INPUT_<NAME>); blank counts as unset."""
    value = os.getenv(f"INPUT_{name.upper()}", "").strip()
    return value or None


def _first(*values: Any) -> Any:
    for value in values:
        if value not in (None, ""):
            return value
    return None


def _read_private_key(value: Optional[str]) -> Optional[str]:
    """Accept either the PEM text itself or a path to a PEM file."""
    if not value or "-----BEGIN" in value:
        return value
    key_path = Path(value).expanduser()
    if key_path.is_file():
        try:
            return key_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigError(f"could not read GitHub App private key {key_path}: {exc}") from exc
    return value


def resolve_settings(
    args: Optional[argparse.Namespace] = None,
    secrets: Optional[Dict[str, Any]] = None,
) -> ReportSettings:
    """Merge CLI flags, INPUT_* / GITHUB_* environment and local secrets into settings.

    Raises ConfigError when the organization or the repos file is not configured.
    """

    args = args if args is not None else parse_args([])
    secrets = secrets if secrets is not None else load_local_secrets()
    app_secrets = secrets.get("github_app") or {}

    org_name = _first(args.org_name, _action_input("org_name"))
    if not org_name:
        raise ConfigError("org_name is required (--org-name or INPUT_ORG_NAME)")

    repos_file = _first(args.repos_file, _action_input("repos_file"))
    if not repos_file:
        raise ConfigError("repos_file is required (--repos-file or INPUT_REPOS_FILE)")

    max_pages = _first(args.max_pages, MAX_PAGES)
    if int(max_pages) <= 0:
        raise ConfigError(f"max_pages must be positive, got {max_pages}")

    debug = args.debug if args.debug is not None else os.getenv("RUNNER_DEBUG") == "1"

    return ReportSettings(
        org_name=str(org_name).strip(),
        repos_file=Path(repos_file),
        output_file=Path(_first(args.output_file, _action_input("output_file"), DEFAULT_OUTPUT_FILE)),
        api_url=_first(
            args.api_url,
            _action_input("api_url"),
            os.getenv("GITHUB_API_URL"),
            DEFAULT_API_URL,
        ),
        github_token=_first(
            args.github_token,
            _action_input("github_token"),
            os.getenv("GITHUB_TOKEN"),
            secrets.get("github_token"),
        ),
        app_id=_first(args.github_app_id, _action_input("github_app_id"), app_secrets.get("app_id")),
        private_key=_read_private_key(
            _first(
                args.github_private_key,
                _action_input("github_private_key"),
                app_secrets.get("private_key"),
            )
        ),
        installation_id=_first(
            args.github_installation_id,
            _action_input("github_installation_id"),
            app_secrets.get("installation_id"),
        ),
        max_pages=int(max_pages),
        debug=bool(debug),
    )


__all__ = [
    "USER_AGENT",
    "DEFAULT_API_URL",
    "DEFAULT_OUTPUT_FILE",
    "PER_PAGE",
    "REQUEST_TIMEOUT",
    "MAX_RETRIES",
    "BACKOFF_BASE_SEC",
    "MAX_WAIT_ON_RATE_LIMIT",
    "MAX_PAGES",
    "ReportSettings",
    "build_arg_parser",
    "parse_args",
    "resolve_settings",
]
