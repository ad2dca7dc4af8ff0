"""Convenience shim to run the issue/project link report."""

from __future__ import annotations

import sys

from src.issue_projects.runner import main as report_main


if __name__ == "__main__":
    report_main(sys.argv[1:])
