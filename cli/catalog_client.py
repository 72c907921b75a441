"""Command-line client for a running FileCatalog server."""

from __future__ import annotations

import argparse
import os
import sys
from typing import Any
from urllib.parse import urlparse

import httpx

DEFAULT_SERVER = "http://127.0.0.1:8000"
_LOCALHOST_HOSTS = {"localhost", "127.0.0.1", "::1"}


def validate_server_url(server_url: str, allow_insecure_http: bool = False) -> str:
    """Validate server URL and enforce HTTPS for non-localhost hosts by default."""
    normalized = server_url.strip().rstrip("/")
    parsed = urlparse(normalized)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("Server URL must include scheme and host (e.g. https://example.com)")

    hostname = parsed.hostname
    if parsed.scheme == "http" and not allow_insecure_http and hostname not in _LOCALHOST_HOSTS:
        raise ValueError(
            "HTTPS is required for non-localhost servers. "
            "Use --allow-insecure-http only on trusted networks."
        )

    return normalized


class CatalogClient:
    """Thin HTTP client over the catalog API."""

    def __init__(self, server_url: str, *, timeout: float = 300.0) -> None:
        self.server_url = server_url.rstrip("/")
        self.client = httpx.Client(base_url=self.server_url, timeout=timeout)

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> CatalogClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def scan(self, path: str, *, recursive: bool = False) -> dict[str, Any]:
        """Synchronize a directory and return the counters."""
        resp = self.client.post("/api/scan", json={"path": path, "recursive": recursive})
        resp.raise_for_status()
        result: dict[str, Any] = resp.json()
        return result

    def list_children(self, parent_path: str) -> list[dict[str, Any]]:
        """List entries recorded inside a directory."""
        resp = self.client.get("/api/entries", params={"parent_path": parent_path})
        resp.raise_for_status()
        result: list[dict[str, Any]] = resp.json()
        return result

    def search(self, query: str, *, limit: int | None = None) -> list[dict[str, Any]]:
        """Search names and tags."""
        params: dict[str, Any] = {"q": query}
        if limit is not None:
            params["limit"] = limit
        resp = self.client.get("/api/entries/search", params=params)
        resp.raise_for_status()
        result: list[dict[str, Any]] = resp.json()
        return result

    def category(self, category: str, scope: str | None = None) -> list[dict[str, Any]]:
        """List files of a category."""
        params = {"scope": scope} if scope else None
        resp = self.client.get(f"/api/entries/category/{category}", params=params)
        resp.raise_for_status()
        result: list[dict[str, Any]] = resp.json()
        return result

    def update_metadata(
        self, entry_id: str, *, tags: str | None = None, importance: str | None = None
    ) -> dict[str, Any]:
        """Set tags and/or importance on an entry."""
        body: dict[str, str] = {}
        if tags is not None:
            body["tags"] = tags
        if importance is not None:
            body["importance"] = importance
        resp = self.client.patch(f"/api/entries/{entry_id}/metadata", json=body)
        resp.raise_for_status()
        result: dict[str, Any] = resp.json()
        return result

    def delete(self, entry_id: str) -> dict[str, Any]:
        """Delete an entry from disk and catalog."""
        resp = self.client.delete(f"/api/entries/{entry_id}")
        resp.raise_for_status()
        result: dict[str, Any] = resp.json()
        return result


def format_entry(entry: dict[str, Any]) -> str:
    """Render one entry as a single listing line."""
    marker = "d" if entry.get("kind") == "directory" else "-"
    size = entry.get("size")
    size_str = f"{size:>12}" if size is not None else " " * 12
    importance = entry.get("importance", "normal")
    flag = "" if importance == "normal" else f" [{importance}]"
    tags = entry.get("tags") or ""
    tag_str = f"  #{tags.replace(',', ' #')}" if tags else ""
    return f"{marker} {size_str}  {entry['id'][:12]}  {entry['name']}{flag}{tag_str}"


def _error_detail(exc: httpx.HTTPStatusError) -> str:
    try:
        detail = exc.response.json().get("detail")
    except ValueError:
        detail = None
    return f"{exc.response.status_code} {detail or exc.response.reason_phrase}"


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="filecatalog-client",
        description="Scan, browse, and tag a FileCatalog server",
    )
    parser.add_argument(
        "--server",
        "-s",
        default=os.environ.get("FILECATALOG_SERVER", DEFAULT_SERVER),
        help=f"Server URL (default: $FILECATALOG_SERVER or {DEFAULT_SERVER})",
    )
    parser.add_argument(
        "--allow-insecure-http",
        action="store_true",
        help="Allow http:// server URLs for non-localhost hosts",
    )

    subparsers = parser.add_subparsers(dest="command")
    scan_p = subparsers.add_parser("scan", help="Synchronize a directory with the catalog")
    scan_p.add_argument("path")
    scan_p.add_argument("--recursive", "-r", action="store_true", help="Descend into subfolders")

    ls_p = subparsers.add_parser("ls", help="List catalog entries inside a directory")
    ls_p.add_argument("path")

    search_p = subparsers.add_parser("search", help="Search entry names and tags")
    search_p.add_argument("query")
    search_p.add_argument("--limit", type=int, default=None)

    cat_p = subparsers.add_parser("category", help="List files of a category")
    cat_p.add_argument("category")
    cat_p.add_argument("--scope", default=None, help="Only files directly inside this directory")

    tag_p = subparsers.add_parser("tag", help="Set tags and/or importance on an entry")
    tag_p.add_argument("id")
    tag_p.add_argument("--tags", default=None, help="Comma or # separated tags")
    tag_p.add_argument("--importance", choices=["normal", "low", "medium", "high"])

    rm_p = subparsers.add_parser("rm", help="Delete an entry from disk and catalog")
    rm_p.add_argument("id")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return

    try:
        server_url = validate_server_url(args.server, args.allow_insecure_http)
    except ValueError as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    with CatalogClient(server_url) as client:
        try:
            if args.command == "scan":
                stats = client.scan(args.path, recursive=args.recursive)
                print(
                    f"Scanned {stats['path']}: {stats['files_seen']} files, "
                    f"{stats['directories_seen']} directories, {stats['errors']} errors"
                )
            elif args.command == "ls":
                for entry in client.list_children(args.path):
                    print(format_entry(entry))
            elif args.command == "search":
                for entry in client.search(args.query, limit=args.limit):
                    print(f"{format_entry(entry)}  ({entry['parent_path']})")
            elif args.command == "category":
                for entry in client.category(args.category, args.scope):
                    print(f"{format_entry(entry)}  ({entry['parent_path']})")
            elif args.command == "tag":
                if args.tags is None and args.importance is None:
                    print("Error: pass --tags and/or --importance")
                    sys.exit(1)
                entry = client.update_metadata(
                    args.id, tags=args.tags, importance=args.importance
                )
                print(format_entry(entry))
            elif args.command == "rm":
                result = client.delete(args.id)
                print(f"Deleted {result['id']} ({result['removed_entries']} catalog entries)")
        except httpx.HTTPStatusError as exc:
            print(f"Error: {_error_detail(exc)}")
            sys.exit(1)
        except httpx.HTTPError as exc:
            print(f"Error: cannot reach {server_url}: {exc}")
            sys.exit(1)


if __name__ == "__main__":
    main()
