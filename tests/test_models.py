"""Tests for src.issue_projects.models shape validation.

Run with:
    pytest tests/test_models.py --maxfail=1 -v --cov=src.issue_projects.models --cov-report=term-missing
"""

import pytest

from src.issue_projects import models
from src.issue_projects.errors import SchemaMismatch, TransportError


def test_parse_issues_builds_typed_nodes():
    data = {
        "repository": {
            "issues": {
                "totalCount": 2,
                "pageInfo": {"hasNextPage": False, "endCursor": None},
                "nodes": [
                    {"number": 1, "projectsV2": {"totalCount": 1, "nodes": [{"number": 5, "title": "Roadmap"}]}},
                    {"number": 2, "projectsV2": {"totalCount": 0, "nodes": []}},
                    None,
                ],
            }
        }
    }
    page = models.parse_issues(data, "o", "r")
    assert page.total_count == 2
    assert len(page.issues) == 2
    assert page.issues[0].projects == (models.ProjectRef(5, "Roadmap"),)
    assert page.issues[0].project_total == 1
    assert page.issues[1].projects == ()


def test_parse_issues_missing_repository_field():
    with pytest.raises(SchemaMismatch):
        models.parse_issues({}, "o", "r")


def test_parse_issues_null_repository_is_transport_error():
    with pytest.raises(TransportError, match="o/r"):
        models.parse_issues({"repository": None}, "o", "r")


def test_parse_issues_project_without_number():
    data = {"repository": {"issues": {"nodes": [{"projectsV2": {"nodes": [{"title": "x"}]}}]}}}
    with pytest.raises(SchemaMismatch, match="number"):
        models.parse_issues(data)


def test_parse_issues_rejects_boolean_number():
    data = {"repository": {"issues": {"nodes": [{"projectsV2": {"nodes": [{"number": True}]}}]}}}
    with pytest.raises(SchemaMismatch):
        models.parse_issues(data)


def test_parse_issues_missing_projects_connection():
    data = {"repository": {"issues": {"nodes": [{"number": 1}]}}}
    with pytest.raises(SchemaMismatch, match="projectsV2"):
        models.parse_issues(data)


def test_parse_repo_projects():
    data = {
        "repository": {
            "projectsV2": {
                "totalCount": 4,
                "nodes": [{"number": 1, "title": "A"}, {"number": 2, "title": None}],
            }
        }
    }
    projects = models.parse_repo_projects(data)
    assert projects.total_count == 4
    assert projects.projects == [models.ProjectRef(1, "A"), models.ProjectRef(2, "")]


def test_parse_repo_projects_requires_total():
    with pytest.raises(SchemaMismatch):
        models.parse_repo_projects({"repository": {"projectsV2": {"nodes": []}}})


def test_parse_rate_budget():
    budget = models.parse_rate_budget(
        {"rateLimit": {"remaining": 4990, "limit": 5000, "cost": 1, "resetAt": "2024-01-01T00:00:00Z"}}
    )
    assert budget == models.RateBudget(4990, 5000, "2024-01-01T00:00:00Z", 1)
    with pytest.raises(SchemaMismatch):
        models.parse_rate_budget({"rateLimit": None})


def test_summary_row_follows_column_order():
    summary = models.RepositorySummary("org", "alpha", 2, 2, 4)
    assert summary.as_row() == ["org", "alpha", 2, 2, 4]
    assert models.CSV_COLUMNS[0] == "org_name"
