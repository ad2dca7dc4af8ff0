"""Input repo list reader and CSV report writer."""

from __future__ import annotations

import csv
import os
from pathlib import Path
from typing import Iterable, List

from .errors import ConfigError, WriteError
from .models import CSV_COLUMNS, RepositorySummary


def read_repos_file(path: str | Path) -> List[str]:
    """Return repository names, one per line, trimmed; blanks and `#` comments dropped."""
    repos_path = Path(path)
    print(f"Reading repos from file: {repos_path}")
    if not repos_path.exists():
        raise ConfigError(f"File not found: {repos_path}")
    if not repos_path.is_file():
        raise ConfigError(f"Path is not a file: {repos_path}")
    try:
        with repos_path.open("r", encoding="utf-8") as handle:
            lines = handle.read().splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Could not read {repos_path}: {exc}") from exc

    repos: List[str] = []
    for line in lines:
        name = line.strip()
        if not name or name.startswith("#"):
            continue
        repos.append(name)
    return repos


def write_report(path: str | Path, summaries: Iterable[RepositorySummary]) -> int:
    """Write the CSV report (header always present); return the number of rows."""
    out_path = Path(path)
    rows = 0
    try:
        if out_path.parent and str(out_path.parent) not in ("", "."):
            os.makedirs(out_path.parent, exist_ok=True)
        with out_path.open("w", encoding="utf-8", newline="") as handle:
            writer = csv.writer(handle, lineterminator="\n")
            writer.writerow(CSV_COLUMNS)
            for summary in summaries:
                writer.writerow(summary.as_row())
                rows += 1
    except OSError as exc:
        raise WriteError(f"Could not write report to {out_path}: {exc}") from exc
    return rows


__all__ = ["read_repos_file", "write_report"]
