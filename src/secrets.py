"""Utilities for loading local (gitignored) GitHub credentials."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_SECRETS_FILENAME = "local_secrets.json"


def _default_secrets_path() -> Path:
    root = Path(__file__).resolve().parents[1]
    return root / DEFAULT_SECRETS_FILENAME


def load_local_secrets(path: Optional[str | Path] = None) -> Dict[str, Any]:
    """Load secrets from a JSON file; return {} when the file is absent or unreadable.

    The file is `path` when given, else $LOCAL_SECRETS_FILE, else
    local_secrets.json at the repository root. `config.resolve_settings`
    falls back to `github_token` and to the `github_app` block (app_id,
    private_key as PEM text or a path, installation_id) after CLI flags
    and environment.

    Expected shape::

        {"github_token": "...",
         "github_app": {"app_id": "...", "private_key": "...", "installation_id": "..."}}
    """

    candidate = path or os.getenv("LOCAL_SECRETS_FILE") or _default_secrets_path()
    secrets_path = Path(candidate).expanduser()
    if not secrets_path.is_file():
        return {}
    try:
        with secrets_path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError) as exc:
        print(f"[warn] ignoring unreadable secrets file {secrets_path}: {exc}")
        return {}
    return data if isinstance(data, dict) else {}


__all__ = ["load_local_secrets", "DEFAULT_SECRETS_FILENAME"]
