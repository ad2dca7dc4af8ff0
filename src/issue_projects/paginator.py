"""Cursor pagination over a GraphQL connection, merged into one response."""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .config import MAX_PAGES
from .errors import PaginationExhausted, SchemaMismatch, TransportError

MERGED_LIST_KEYS = ("nodes", "edges")

KeyPath = Tuple[str, ...]


def find_page_info_path(obj: Any, path: KeyPath = ()) -> Optional[KeyPath]:
    """Depth-first search for the object carrying `pageInfo`; returns its key path."""
    if not isinstance(obj, dict):
        return None
    if isinstance(obj.get("pageInfo"), dict):
        return path
    for key, value in obj.items():
        found = find_page_info_path(value, path + (key,))
        if found is not None:
            return found
    return None


def _get(obj: Dict[str, Any], path: KeyPath) -> Dict[str, Any]:
    for key in path:
        obj = obj[key]
    return obj


def page_cursor(response: Dict[str, Any]) -> Tuple[KeyPath, bool, Optional[str]]:
    """Return (connection path, hasNextPage, endCursor) for one page."""
    path = find_page_info_path(response)
    if path is None:
        missing = [key for key, value in response.items() if value is None]
        if missing:
            raise TransportError(f"{missing[0]} not found or not accessible")
        raise SchemaMismatch("paginated query response has no pageInfo")
    page_info = _get(response, path)["pageInfo"]
    return path, bool(page_info.get("hasNextPage")), page_info.get("endCursor")


def merge_pages(pages: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """Merge page responses as if one unpaginated call had been made.

    `nodes`/`edges` at the paginated connection are concatenated in page
    order; all other fields come from the first page; `pageInfo` is taken
    from the last page.
    """
    if not pages:
        raise ValueError("merge_pages needs at least one page")

    merged = copy.deepcopy(pages[0])
    path, _, _ = page_cursor(merged)
    connection = _get(merged, path)
    for page in pages[1:]:
        next_connection = _get(page, path)
        for key in MERGED_LIST_KEYS:
            if isinstance(next_connection.get(key), list):
                connection.setdefault(key, [])
                connection[key] = list(connection[key] or []) + next_connection[key]
        connection["pageInfo"] = dict(next_connection["pageInfo"])
    return merged


def paginate(
    client,
    query: str,
    variables: Optional[Dict[str, Any]] = None,
    *,
    max_pages: int = MAX_PAGES,
) -> Dict[str, Any]:
    """Follow `$cursor` until `hasNextPage` is false and return the merged result."""
    if max_pages <= 0:
        raise ValueError(f"max_pages must be positive, got {max_pages}")

    variables = dict(variables or {})
    cursor: Optional[str] = None
    pages: List[Dict[str, Any]] = []

    while True:
        if len(pages) >= max_pages:
            raise PaginationExhausted(len(pages), max_pages)
        page = client.execute(query, {**variables, "cursor": cursor})
        pages.append(page)

        _, has_next, end_cursor = page_cursor(page)
        if not has_next:
            break
        if not end_cursor:
            raise SchemaMismatch("pageInfo.hasNextPage is true but endCursor is empty")
        if end_cursor == cursor:
            raise SchemaMismatch(f"cursor did not advance past {end_cursor!r}")
        cursor = end_cursor

    return merge_pages(pages)


__all__ = ["find_page_info_path", "page_cursor", "merge_pages", "paginate"]
