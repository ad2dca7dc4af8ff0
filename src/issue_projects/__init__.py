"""Report how issues and repositories in an organization link to GitHub Projects."""

from .runner import main, process_repo, run

__all__ = ["main", "process_repo", "run"]
