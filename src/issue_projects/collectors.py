"""GraphQL queries for rate budget, issue project links and repository projects."""

from __future__ import annotations

from .aggregator import format_project_details
from .config import MAX_PAGES, PER_PAGE
from .models import (
    IssuesPage,
    ProjectsList,
    RateBudget,
    parse_issues,
    parse_rate_budget,
    parse_repo_projects,
)
from .paginator import paginate

RATE_LIMIT_QUERY = """
query {
  rateLimit {
    limit
    cost
    remaining
    resetAt
  }
}
"""

ISSUES_QUERY = f"""
query IssueProjects($owner:String!, $repo:String!, $cursor:String) {{
  repository(owner:$owner, name:$repo) {{
    issues(first:{PER_PAGE}, after:$cursor) {{
      totalCount
      pageInfo {{
        endCursor
        hasNextPage
      }}
      nodes {{
        number
        projectsV2(first:{PER_PAGE}) {{
          totalCount
          nodes {{
            number
            title
          }}
        }}
      }}
    }}
  }}
}}
"""

REPO_PROJECTS_QUERY = f"""
query RepoProjects($owner:String!, $repo:String!, $cursor:String) {{
  repository(owner:$owner, name:$repo) {{
    projectsV2(first:{PER_PAGE}, after:$cursor) {{
      totalCount
      pageInfo {{
        endCursor
        hasNextPage
      }}
      nodes {{
        number
        title
      }}
    }}
  }}
}}
"""


def get_rate_budget(client) -> RateBudget:
    """Return the remaining GraphQL call budget."""
    return parse_rate_budget(client.execute(RATE_LIMIT_QUERY))


def get_issue_projects(client, owner: str, repo: str, *, max_pages: int = MAX_PAGES) -> IssuesPage:
    """Fetch every issue of `owner/repo` with the projects it is linked to."""
    merged = paginate(client, ISSUES_QUERY, {"owner": owner, "repo": repo}, max_pages=max_pages)
    page = parse_issues(merged, owner, repo)
    for issue in page.issues:
        if issue.project_total is not None and issue.project_total > len(issue.projects):
            print(
                f"[warn] {owner}/{repo}#{issue.number} links {issue.project_total} projects; "
                f"only the first {len(issue.projects)} were counted"
            )
    return page


def get_repo_projects(client, owner: str, repo: str, *, max_pages: int = MAX_PAGES) -> ProjectsList:
    """Fetch the projects linked to the repository itself."""
    merged = paginate(client, REPO_PROJECTS_QUERY, {"owner": owner, "repo": repo}, max_pages=max_pages)
    projects = parse_repo_projects(merged, owner, repo)
    print(
        f"Projects linked to repo: {projects.total_count} "
        f"[{format_project_details(projects.projects)}]"
    )
    return projects


__all__ = [
    "RATE_LIMIT_QUERY",
    "ISSUES_QUERY",
    "REPO_PROJECTS_QUERY",
    "get_rate_budget",
    "get_issue_projects",
    "get_repo_projects",
]
