"""Tests for src.issue_projects.runner covering the batch driver and CLI entry point.

Run with:
    pytest tests/test_runner.py --maxfail=1 -v --cov=src.issue_projects.runner --cov-report=term-missing
"""

from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock, patch

import pytest

from src.issue_projects import runner
from src.issue_projects.auth import AppAuth, TokenAuth
from src.issue_projects.collectors import ISSUES_QUERY, RATE_LIMIT_QUERY, REPO_PROJECTS_QUERY
from src.issue_projects.errors import ThrottleSecondary, TransportError
from src.issue_projects.http_client import GraphQLClient
from src.issue_projects.models import RepositorySummary


def _issues_page(issues, has_next=False, cursor=None):
    return {
        "repository": {
            "issues": {
                "totalCount": len(issues),
                "pageInfo": {"hasNextPage": has_next, "endCursor": cursor},
                "nodes": [
                    {
                        "number": number,
                        "projectsV2": {
                            "totalCount": len(projects),
                            "nodes": [{"number": n, "title": t} for n, t in projects],
                        },
                    }
                    for number, projects in issues
                ],
            }
        }
    }


def _repo_projects(total):
    return {
        "repository": {
            "projectsV2": {
                "totalCount": total,
                "pageInfo": {"hasNextPage": False, "endCursor": None},
                "nodes": [],
            }
        }
    }


class FakeClient:
    """Serves canned pages per repository; cursor "pN" selects page N."""

    def __init__(self, issue_pages: Dict[str, List[dict]], repo_totals: Dict[str, int],
                 failures: Optional[Dict[str, Exception]] = None) -> None:
        self.auth = TokenAuth("t")
        self.issue_pages = issue_pages
        self.repo_totals = repo_totals
        self.failures = failures or {}
        self.calls: List[Any] = []

    def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        variables = variables or {}
        self.calls.append((query, dict(variables)))
        if query == RATE_LIMIT_QUERY:
            return {"rateLimit": {"remaining": 4999, "limit": 5000}}
        repo = variables["repo"]
        if repo in self.failures:
            raise self.failures[repo]
        if query == ISSUES_QUERY:
            cursor = variables.get("cursor")
            index = int(cursor[1:]) if cursor else 0
            return self.issue_pages[repo][index]
        if query == REPO_PROJECTS_QUERY:
            return _repo_projects(self.repo_totals[repo])
        raise AssertionError(f"unexpected query {query!r}")


ALPHA_PAGES = [
    _issues_page([(1, [(5, "Roadmap"), (7, "Bugs")])], has_next=True, cursor="p1"),
    _issues_page([(2, [(5, "Roadmap")])], has_next=True, cursor="p2"),
    _issues_page([(3, [])]),
]


def test_process_repo_end_to_end_example(capsys):
    client = FakeClient({"alpha": ALPHA_PAGES}, {"alpha": 4})
    summary = runner.process_repo(client, "org", "alpha")
    assert summary == RepositorySummary("org", "alpha", 2, 2, 4)
    out = capsys.readouterr().out
    assert "GraphQL calls remaining: 4999" in out
    assert "Total issues: 3" in out
    assert "Issues with at least one project: 2" in out
    assert 'Projects linked to issues: 2 ["Roadmap" (#5), "Bugs" (#7)]' in out


def test_empty_repository_yields_zero_counts():
    client = FakeClient({"empty": [_issues_page([])]}, {"empty": 0})
    assert runner.process_repo(client, "org", "empty") == RepositorySummary("org", "empty", 0, 0, 0)


def test_processor_tracks_state():
    client = FakeClient({"alpha": ALPHA_PAGES}, {"alpha": 1})
    processor = runner.RepoProcessor(client, "org", "alpha")
    assert processor.state is runner.RepoState.PENDING
    processor.process()
    assert processor.state is runner.RepoState.DONE


def test_run_skips_failing_repository_and_keeps_order(capsys):
    client = FakeClient(
        {"alpha": ALPHA_PAGES, "gamma": [_issues_page([(1, [(9, "Ops")])])]},
        {"alpha": 4, "gamma": 1},
        failures={"beta": TransportError("boom")},
    )
    summaries = runner.run(client, "org", ["alpha", "beta", "", "gamma"])
    assert [s.repo_name for s in summaries] == ["alpha", "gamma"]
    assert summaries[1] == RepositorySummary("org", "gamma", 1, 1, 1)
    out = capsys.readouterr().out
    assert "Error processing repo org/beta while fetching issues: boom" in out


def test_run_skips_on_secondary_rate_limit():
    client = FakeClient({"alpha": ALPHA_PAGES}, {"alpha": 4}, failures={"beta": ThrottleSecondary("abuse")})
    summaries = runner.run(client, "org", ["beta", "alpha"])
    assert [s.repo_name for s in summaries] == ["alpha"]


def test_run_reports_runaway_pagination_distinctly(capsys):
    endless = [_issues_page([(i, [])], has_next=True, cursor=f"p{i + 1}") for i in range(10)]
    client = FakeClient({"loop": endless, "alpha": ALPHA_PAGES}, {"loop": 0, "alpha": 4})
    summaries = runner.run(client, "org", ["loop", "alpha"], max_pages=3)
    assert [s.repo_name for s in summaries] == ["alpha"]
    assert "runaway pagination for org/loop" in capsys.readouterr().out


def test_rate_budget_failure_does_not_fail_repository(capsys):
    client = FakeClient({"alpha": ALPHA_PAGES}, {"alpha": 4})
    original = client.execute

    def execute(query, variables=None):
        if query == RATE_LIMIT_QUERY:
            raise TransportError("rate limit lookup failed")
        return original(query, variables)

    client.execute = execute
    summary = runner.process_repo(client, "org", "alpha")
    assert summary.projects_linked_to_repo == 4
    assert "[warn] could not fetch rate limit" in capsys.readouterr().out


def test_repositories_do_not_share_counters():
    pages = {
        "one": [_issues_page([(1, [(5, "Roadmap")])])],
        "two": [_issues_page([(1, [(6, "Other")])])],
    }
    summaries = runner.run(FakeClient(pages, {"one": 0, "two": 0}), "org", ["one", "two"])
    assert [s.unique_projects_linked_by_issues for s in summaries] == [1, 1]


def test_main_writes_csv(tmp_path, monkeypatch):
    repos = tmp_path / "repos.txt"
    repos.write_text("alpha\nbeta\n", encoding="utf-8")
    out = tmp_path / "report.csv"
    client = FakeClient({"alpha": ALPHA_PAGES}, {"alpha": 4}, failures={"beta": TransportError("boom")})
    monkeypatch.setattr(runner, "build_client", lambda settings: client)

    runner.main(["--org-name", "org", "--repos-file", str(repos), "--output-file", str(out)])

    assert out.read_text(encoding="utf-8").splitlines() == [
        "org_name,repo_name,issues_linked_to_projects,unique_projects_linked_by_issues,projects_linked_to_repo",
        "org,alpha,2,2,4",
    ]


def test_main_exits_on_missing_repos_file(tmp_path, capsys):
    with patch.object(runner, "build_client") as mock_build:
        with pytest.raises(SystemExit) as excinfo:
            runner.main(["--org-name", "org", "--repos-file", str(tmp_path / "missing.txt")])
    assert excinfo.value.code == 1
    mock_build.assert_not_called()
    assert "Action failed: File not found" in capsys.readouterr().out


def test_main_exits_when_report_cannot_be_written(tmp_path, monkeypatch):
    repos = tmp_path / "repos.txt"
    repos.write_text("alpha\n", encoding="utf-8")
    client = FakeClient({"alpha": ALPHA_PAGES}, {"alpha": 4})
    monkeypatch.setattr(runner, "build_client", lambda settings: client)
    with pytest.raises(SystemExit) as excinfo:
        runner.main(["--org-name", "org", "--repos-file", str(repos), "--output-file", str(tmp_path)])
    assert excinfo.value.code == 1
    # the batch still ran before the write failed
    assert any(query == REPO_PROJECTS_QUERY for query, _ in client.calls)


def _http_resp(status, payload):
    resp = MagicMock()
    resp.status_code = status
    resp.headers = {}
    resp.json.return_value = payload
    resp.text = str(payload)
    return resp


@patch("src.issue_projects.auth.jwt.encode", return_value="signed-jwt")
def test_run_skips_repository_when_installation_token_refresh_is_malformed(mock_encode, capsys):
    token_session = MagicMock()
    token_session.post.side_effect = [
        _http_resp(201, {"message": "unexpected"}),
        _http_resp(201, {"message": "unexpected"}),
        _http_resp(201, {"token": "inst", "expires_at": "2999-01-01T00:00:00Z"}),
    ]
    app_auth = AppAuth("1", "pem", "2", "https://api.github.com", session=token_session)

    rate = _http_resp(200, {"data": {"rateLimit": {"remaining": 4999, "limit": 5000}}})
    graphql_session = MagicMock()
    graphql_session.headers = {}
    graphql_session.post.side_effect = [
        rate,
        _http_resp(200, {"data": _issues_page([(1, [(5, "Roadmap")])])}),
        rate,
        _http_resp(200, {"data": _repo_projects(2)}),
    ]
    client = GraphQLClient("https://api.github.com/graphql", app_auth, session=graphql_session)

    summaries = runner.run(client, "org", ["a", "b"])

    assert summaries == [RepositorySummary("org", "b", 1, 1, 2)]
    out = capsys.readouterr().out
    assert "Error processing repo org/a while fetching issues" in out
    assert "installation token response has no token" in out
