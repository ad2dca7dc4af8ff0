"""Entry points: per-repository processing, the batch driver and the CLI."""

from __future__ import annotations

import enum
import sys
from typing import List, Optional, Sequence

from .aggregator import aggregate, format_project_details
from .auth import build_auth
from .collectors import get_issue_projects, get_rate_budget, get_repo_projects
from .config import MAX_PAGES, ReportSettings, parse_args, resolve_settings
from .errors import PaginationExhausted, ReportError
from .http_client import GraphQLClient
from .models import RepositorySummary
from .report import read_repos_file, write_report


class RepoState(enum.Enum):
    PENDING = "pending"
    FETCHING_ISSUES = "fetching issues"
    AGGREGATING = "aggregating"
    FETCHING_REPO_PROJECTS = "fetching repo projects"
    DONE = "done"
    FAILED = "failed"


def log_rate_budget(client) -> None:
    """Print the remaining GraphQL budget; a failed lookup is only a warning."""
    try:
        budget = get_rate_budget(client)
    except ReportError as exc:
        print(f"[warn] could not fetch rate limit: {exc}")
        return
    print(f"GraphQL calls remaining: {budget.remaining}")


class RepoProcessor:
    """Walks one repository through its states and builds its summary row."""

    def __init__(self, client, org_name: str, repo: str, *, max_pages: int = MAX_PAGES) -> None:
        self.client = client
        self.org_name = org_name
        self.repo = repo
        self.max_pages = max_pages
        self.state = RepoState.PENDING

    def process(self) -> RepositorySummary:
        log_rate_budget(self.client)

        self.state = RepoState.FETCHING_ISSUES
        issues = get_issue_projects(self.client, self.org_name, self.repo, max_pages=self.max_pages)

        self.state = RepoState.AGGREGATING
        result = aggregate(issues.issues)
        projects = [occ.project for occ in result.unique_projects.values()]
        print(f"Total issues: {result.issue_count}")
        print(f"Issues with at least one project: {result.issues_with_project_count}")
        print(
            f"Projects linked to issues: {result.unique_project_count} "
            f"[{format_project_details(projects)}]"
        )
        print("------------------")

        self.state = RepoState.FETCHING_REPO_PROJECTS
        log_rate_budget(self.client)
        repo_projects = get_repo_projects(self.client, self.org_name, self.repo, max_pages=self.max_pages)
        print("------------------")

        self.state = RepoState.DONE
        return RepositorySummary(
            org_name=self.org_name,
            repo_name=self.repo,
            issues_linked_to_projects=result.issues_with_project_count,
            unique_projects_linked_by_issues=result.unique_project_count,
            projects_linked_to_repo=repo_projects.total_count,
        )


def process_repo(client, org_name: str, repo: str, *, max_pages: int = MAX_PAGES) -> RepositorySummary:
    """Run the issue scan and repository project lookup for `org_name/repo`."""
    return RepoProcessor(client, org_name, repo, max_pages=max_pages).process()


def run(
    client,
    org_name: str,
    repo_names: Sequence[str],
    *,
    max_pages: int = MAX_PAGES,
) -> List[RepositorySummary]:
    """Process repositories in order; a failing repository is logged and skipped."""
    summaries: List[RepositorySummary] = []
    print(f"Processing {len(repo_names)} repos...")
    for repo in repo_names:
        repo = repo.strip()
        if not repo:
            continue
        print(f"\n=== {org_name}/{repo} ===")
        processor = RepoProcessor(client, org_name, repo, max_pages=max_pages)
        try:
            summaries.append(processor.process())
        except PaginationExhausted as exc:
            print(
                f"[error] runaway pagination for {org_name}/{repo} while "
                f"{processor.state.value}: {exc}; skipping"
            )
            processor.state = RepoState.FAILED
        except ReportError as exc:
            print(
                f"[error] Error processing repo {org_name}/{repo} while "
                f"{processor.state.value}: {exc}; skipping"
            )
            processor.state = RepoState.FAILED
    print(f"\nProcessed {len(summaries)} of {len(repo_names)} repositories.")
    return summaries


def build_client(settings: ReportSettings) -> GraphQLClient:
    """Construct the GraphQL client and its credentials from settings."""
    auth = build_auth(settings)
    return GraphQLClient(settings.graphql_url, auth, debug=settings.debug)


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point; exits with status 1 on configuration or write failures."""
    try:
        settings = resolve_settings(parse_args(argv))
        if settings.debug:
            print("[debug] Debug mode is enabled")
        repos = read_repos_file(settings.repos_file)
        if not repos:
            print(f"[warn] no repositories listed in {settings.repos_file}")
        client = build_client(settings)
        client.auth.token()
        log_rate_budget(client)

        summaries = run(client, settings.org_name, repos, max_pages=settings.max_pages)

        rows = write_report(settings.output_file, summaries)
        print(f"Wrote {rows} rows to {settings.output_file}")
        log_rate_budget(client)
    except ReportError as exc:
        print(f"[error] Action failed: {exc}")
        sys.exit(1)


__all__ = ["RepoState", "RepoProcessor", "log_rate_budget", "process_repo", "run", "build_client", "main"]
