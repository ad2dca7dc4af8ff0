"""Fold a repository's issues into per-project occurrence counts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Set

from .models import IssueNode, ProjectOccurrence, ProjectRef


@dataclass
class ProjectAggregate:
    """Projects referenced by a repository's issues, in first-seen order."""

    unique_projects: Dict[int, ProjectOccurrence] = field(default_factory=dict)
    issues_with_project_count: int = 0
    issue_count: int = 0

    @property
    def unique_project_count(self) -> int:
        return len(self.unique_projects)


def aggregate(issues: Iterable[IssueNode]) -> ProjectAggregate:
    """Count issues with 1+ linked project and deduplicate projects by number.

    A project contributes one increment per issue that links it, even when
    the API returns the same issue/project pair more than once.
    """
    result = ProjectAggregate()
    for issue in issues:
        result.issue_count += 1
        if not issue.projects:
            continue
        result.issues_with_project_count += 1

        seen_on_issue: Set[int] = set()
        for project in issue.projects:
            if project.number in seen_on_issue:
                continue
            seen_on_issue.add(project.number)
            occurrence = result.unique_projects.get(project.number)
            if occurrence is None:
                occurrence = ProjectOccurrence(project=project)
                result.unique_projects[project.number] = occurrence
            occurrence.count += 1
    return result


def format_project(project: ProjectRef) -> str:
    return f'"{project.title}" (#{project.number})'


def format_project_details(projects: Iterable[ProjectRef]) -> str:
    """Render projects as `"title" (#number), ...` preserving input order."""
    return ", ".join(format_project(project) for project in projects)


__all__ = ["ProjectAggregate", "aggregate", "format_project", "format_project_details"]
