"""CLI entrypoint for Dedup Cache."""

from __future__ import annotations

import json
import mimetypes
import os
from pathlib import Path
from typing import Optional

import requests
import typer

from dedup_cache.ingest.fingerprint import fingerprint_file

app = typer.Typer(name="ddc", help="Dedup Cache command-line interface")

DEFAULT_HOST = "http://127.0.0.1:8000"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip('/')
    env_host = os.environ.get("DDC_HOST")
    if env_host:
        return env_host.rstrip('/')
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    resp = requests.request(method, url, timeout=60, **kwargs)
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


def _echo(payload: object) -> None:
    typer.echo(json.dumps(payload, indent=2))


@app.command()
def upload(
    paths: list[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Files to upload"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Upload files; duplicates are reported instead of reprocessed."""
    for path in paths:
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        with path.open("rb") as fh:
            resp = _request("POST", "/upload", host=host, files={"file": (path.name, fh, content_type)})
        _echo(resp.json())


@app.command()
def check(
    fingerprint: Optional[str] = typer.Argument(None, help="SHA-256 hex digest"),
    file: Optional[Path] = typer.Option(None, "--file", exists=True, dir_okay=False, help="Hash this file locally first"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Ask the server whether content was already uploaded."""
    if file is not None:
        fingerprint = fingerprint_file(file)
    if not fingerprint:
        typer.echo("Provide a hash or --file", err=True)
        raise typer.Exit(code=2)
    resp = _request("GET", f"/check-duplicate/{fingerprint}", host=host)
    _echo(resp.json())


@app.command()
def files(
    limit: int = typer.Option(50, "--limit", help="Page size"),
    offset: int = typer.Option(0, "--offset", help="Records to skip"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """List stored files, newest first."""
    resp = _request("GET", "/files", host=host, params={"limit": limit, "offset": offset})
    _echo(resp.json())


@app.command()
def stats(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show record counts by processing status."""
    resp = _request("GET", "/stats", host=host)
    _echo(resp.json())


@app.command("hash")
def hash_file(path: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to fingerprint")) -> None:
    """Print the fingerprint of a local file without contacting the server."""
    typer.echo(fingerprint_file(path))


if __name__ == "__main__":
    app()
