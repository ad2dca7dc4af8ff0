"""Typed views of the GraphQL responses, validated on parse."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .errors import SchemaMismatch, TransportError


@dataclass(frozen=True)
class ProjectRef:
    """A Projects V2 board; identity is `number` within the organization."""

    number: int
    title: str


@dataclass
class ProjectOccurrence:
    """A project plus how many issues in the current repository reference it."""

    project: ProjectRef
    count: int = 0


@dataclass(frozen=True)
class IssueNode:
    number: Optional[int]
    projects: Tuple[ProjectRef, ...] = ()
    project_total: Optional[int] = None


@dataclass
class IssuesPage:
    total_count: Optional[int]
    issues: List[IssueNode] = field(default_factory=list)


@dataclass
class ProjectsList:
    total_count: int
    projects: List[ProjectRef] = field(default_factory=list)


@dataclass(frozen=True)
class RateBudget:
    """Remaining GraphQL quota; observational only."""

    remaining: int
    limit: Optional[int] = None
    reset_at: Optional[str] = None
    cost: Optional[int] = None


CSV_COLUMNS = [
    "org_name",
    "repo_name",
    "issues_linked_to_projects",
    "unique_projects_linked_by_issues",
    "projects_linked_to_repo",
]


@dataclass(frozen=True)
class RepositorySummary:
    org_name: str
    repo_name: str
    issues_linked_to_projects: int
    unique_projects_linked_by_issues: int
    projects_linked_to_repo: int

    def as_row(self) -> List[Any]:
        return [getattr(self, column) for column in CSV_COLUMNS]


def _require(obj: Any, key: str, kind: type, where: str) -> Any:
    if not isinstance(obj, dict):
        raise SchemaMismatch(f"{where}: expected an object, got {type(obj).__name__}")
    value = obj.get(key)
    if kind is int and isinstance(value, bool):
        value = None
    if not isinstance(value, kind):
        raise SchemaMismatch(f"{where}.{key}: expected {kind.__name__}, got {value!r}")
    return value


def _optional_int(obj: Dict[str, Any], key: str) -> Optional[int]:
    value = obj.get(key)
    return value if isinstance(value, int) and not isinstance(value, bool) else None


def _repository(data: Dict[str, Any], owner: str, repo: str) -> Dict[str, Any]:
    if not isinstance(data, dict) or "repository" not in data:
        raise SchemaMismatch("response has no repository field")
    repository = data["repository"]
    if repository is None:
        raise TransportError(f"repository {owner}/{repo} not found or not accessible")
    if not isinstance(repository, dict):
        raise SchemaMismatch("repository: expected an object")
    return repository


def parse_project(node: Any, where: str) -> ProjectRef:
    number = _require(node, "number", int, where)
    title = node.get("title")
    return ProjectRef(number=number, title=title if isinstance(title, str) else "")


def parse_issues(data: Dict[str, Any], owner: str = "", repo: str = "") -> IssuesPage:
    """Parse a (merged) issues-with-projects response."""
    issues_obj = _require(_repository(data, owner, repo), "issues", dict, "repository")
    nodes = _require(issues_obj, "nodes", list, "repository.issues")

    issues: List[IssueNode] = []
    for idx, node in enumerate(nodes):
        where = f"repository.issues.nodes[{idx}]"
        if node is None:
            continue
        projects_obj = _require(node, "projectsV2", dict, where)
        project_nodes = _require(projects_obj, "nodes", list, f"{where}.projectsV2")
        projects = tuple(
            parse_project(p, f"{where}.projectsV2.nodes[{pidx}]")
            for pidx, p in enumerate(project_nodes)
            if p is not None
        )
        issues.append(
            IssueNode(
                number=_optional_int(node, "number"),
                projects=projects,
                project_total=_optional_int(projects_obj, "totalCount"),
            )
        )
    return IssuesPage(total_count=_optional_int(issues_obj, "totalCount"), issues=issues)


def parse_repo_projects(data: Dict[str, Any], owner: str = "", repo: str = "") -> ProjectsList:
    """Parse the repository-level projectsV2 connection."""
    projects_obj = _require(_repository(data, owner, repo), "projectsV2", dict, "repository")
    total = _require(projects_obj, "totalCount", int, "repository.projectsV2")
    nodes = projects_obj.get("nodes") or []
    if not isinstance(nodes, list):
        raise SchemaMismatch("repository.projectsV2.nodes: expected a list")
    projects = [
        parse_project(node, f"repository.projectsV2.nodes[{idx}]")
        for idx, node in enumerate(nodes)
        if node is not None
    ]
    return ProjectsList(total_count=total, projects=projects)


def parse_rate_budget(data: Dict[str, Any]) -> RateBudget:
    rate = data.get("rateLimit") if isinstance(data, dict) else None
    remaining = _require(rate, "remaining", int, "rateLimit")
    reset_at = rate.get("resetAt")
    return RateBudget(
        remaining=remaining,
        limit=_optional_int(rate, "limit"),
        reset_at=reset_at if isinstance(reset_at, str) else None,
        cost=_optional_int(rate, "cost"),
    )


__all__ = [
    "ProjectRef",
    "ProjectOccurrence",
    "IssueNode",
    "IssuesPage",
    "ProjectsList",
    "RateBudget",
    "RepositorySummary",
    "CSV_COLUMNS",
    "parse_project",
    "parse_issues",
    "parse_repo_projects",
    "parse_rate_budget",
]
