"""CLI entrypoint for Voice Journal."""

from __future__ import annotations

import json
import os
from typing import Optional

import requests
import typer

from voice_journal.security.keychain import (
    API_KEY_ACCOUNT,
    delete_secret,
    get_secret,
    is_valid_api_key_format,
    store_secret,
)
from voice_journal.utils.time import format_duration

app = typer.Typer(name="vj", help="Voice Journal command-line interface")
record_app = typer.Typer(name="record", help="Start and stop recordings")
playback_app = typer.Typer(name="playback", help="Control the current playback")
entries_app = typer.Typer(name="entries", help="Inspect and manage entries")
categories_app = typer.Typer(name="categories", help="Manage categories")
tags_app = typer.Typer(name="tags", help="Search, inspect and merge tags")
key_app = typer.Typer(name="key", help="Manage the OpenAI API key in the OS keychain")
app.add_typer(record_app, name="record")
app.add_typer(playback_app, name="playback")
app.add_typer(entries_app, name="entries")
app.add_typer(categories_app, name="categories")
app.add_typer(tags_app, name="tags")
app.add_typer(key_app, name="key")

DEFAULT_HOST = "http://127.0.0.1:5173"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip('/')
    env_host = os.environ.get("VJ_HOST")
    if env_host:
        return env_host.rstrip('/')
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    try:
        resp = requests.request(method, url, timeout=60, **kwargs)
    except requests.RequestException as exc:
        typer.echo(f"Cannot reach {base}: {exc}", err=True)
        raise typer.Exit(code=2)
    if not resp.ok:
        try:
            detail = resp.json().get("detail", resp.text)
        except ValueError:
            detail = resp.text
        if isinstance(detail, dict):
            detail = f"{detail.get('title', 'Error')}: {detail.get('message', '')}"
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


def _echo_json(resp: requests.Response) -> None:
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def health(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Run the system health check; exits 1 when unhealthy."""
    resp = _request("GET", "/health/system", host=host)
    _echo_json(resp)
    if not resp.json().get("is_healthy", False):
        raise typer.Exit(code=1)


@app.command()
def integrity(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Cross-check entries against recordings on disk."""
    _echo_json(_request("GET", "/integrity", host=host))


@app.command()
def cleanup(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Delete recordings that no entry references."""
    _echo_json(_request("POST", "/maintenance/cleanup", host=host))


@app.command()
def diagnostics(
    as_json: bool = typer.Option(False, "--json", help="Print the raw payload"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show recently classified errors."""
    resp = _request("GET", "/diagnostics", host=host)
    if as_json:
        _echo_json(resp)
    else:
        typer.echo(resp.json()["report"])


@record_app.command("start")
def record_start(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Start recording a new entry."""
    payload = _request("POST", "/recording/start", host=host).json()
    for warning in payload.get("warnings", []):
        typer.echo(f"Warning: {warning.get('title')}: {warning.get('message')}", err=True)
    typer.echo(f"Recording to {payload['output_path']}")


@record_app.command("stop")
def record_stop(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Stop recording and save the entry."""
    _echo_json(_request("POST", "/recording/stop", host=host))


@app.command()
def play(
    entry_id: str = typer.Argument(..., help="Entry identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Play an entry's recording."""
    payload = _request("POST", f"/playback/{entry_id}", host=host).json()
    typer.echo(f"Playing {entry_id} ({format_duration(payload.get('duration'))})")


@playback_app.command("pause")
def playback_pause(host: Optional[str] = typer.Option(None, "--host", help="Override backend host")) -> None:
    """Pause playback."""
    _request("POST", "/playback/pause", host=host)
    typer.echo("Paused")


@playback_app.command("resume")
def playback_resume(host: Optional[str] = typer.Option(None, "--host", help="Override backend host")) -> None:
    """Resume paused playback."""
    _request("POST", "/playback/resume", host=host)
    typer.echo("Resumed")


@playback_app.command("stop")
def playback_stop(host: Optional[str] = typer.Option(None, "--host", help="Override backend host")) -> None:
    """Stop playback."""
    _request("POST", "/playback/stop", host=host)
    typer.echo("Stopped")


@entries_app.command("list")
def list_entries(
    category: Optional[str] = typer.Option(None, "--category", help="Category id to filter by"),
    tag: Optional[str] = typer.Option(None, "--tag", help="Tag label to filter by"),
    uncategorized: bool = typer.Option(False, "--uncategorized", help="Only entries without a category"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """List entries, newest first."""
    params: dict[str, object] = {}
    if category:
        params["category_id"] = category
    if tag:
        params["tag"] = tag
    if uncategorized:
        params["uncategorized"] = "true"
    _echo_json(_request("GET", "/entries", host=host, params=params or None))


@entries_app.command("delete")
def delete_entry(
    entry_id: str = typer.Argument(..., help="Entry identifier"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Delete an entry and its recording."""
    if not yes:
        typer.confirm(f"Delete entry {entry_id} and its recording?", abort=True)
    _request("DELETE", f"/entries/{entry_id}", host=host)
    typer.echo(json.dumps({"status": "ok"}))


@entries_app.command("enrich")
def enrich_entry(
    entry_id: str = typer.Argument(..., help="Entry identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Queue transcription and summarization for an entry."""
    _request("POST", f"/entries/{entry_id}/enrich", host=host)
    typer.echo(f"Enrichment scheduled for {entry_id}")


@categories_app.command("list")
def list_categories(host: Optional[str] = typer.Option(None, "--host", help="Override backend host")) -> None:
    """List predefined and custom categories."""
    _echo_json(_request("GET", "/categories", host=host))


@categories_app.command("stats")
def category_stats(host: Optional[str] = typer.Option(None, "--host", help="Override backend host")) -> None:
    """Show entry counts and recorded time per category."""
    for stats in _request("GET", "/categories/stats", host=host).json():
        typer.echo(f"{stats['name']:<20} {stats['entry_count']:>5}  {stats['formatted_duration']}")


@categories_app.command("create")
def create_category(
    name: str = typer.Argument(..., help="Category name"),
    color: Optional[str] = typer.Option(None, "--color", help="Hex color, e.g. #FF9500"),
    icon: Optional[str] = typer.Option(None, "--icon", help="Icon name"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Create a custom category."""
    _echo_json(_request("POST", "/categories", host=host, json={"name": name, "color": color, "icon": icon}))


@categories_app.command("delete")
def delete_category(
    category_id: str = typer.Argument(..., help="Category identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Delete a custom category; its entries become uncategorized."""
    _request("DELETE", f"/categories/{category_id}", host=host)
    typer.echo(json.dumps({"status": "ok"}))


@tags_app.command("list")
def list_tags(
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Case-insensitive substring"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """List tags, optionally filtered by a search term."""
    params = {"q": search} if search else None
    for tag in _request("GET", "/tags", host=host, params=params).json():
        typer.echo(tag["label"])


@tags_app.command("stats")
def tag_stats(host: Optional[str] = typer.Option(None, "--host", help="Override backend host")) -> None:
    """Show how many entries use each tag."""
    for stats in _request("GET", "/tags/stats", host=host).json():
        typer.echo(f"{stats['label']:<20} {stats['entry_count']:>5}  {format_duration(stats['total_duration'])}")


@tags_app.command("merge")
def merge_tags(
    target: str = typer.Argument(..., help="Tag that survives"),
    sources: list[str] = typer.Argument(..., help="Tags folded into the target"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Merge source tags into a target tag."""
    payload = _request("POST", "/tags/merge", host=host, json={"sources": sources, "target": target}).json()
    typer.echo(f"Moved {payload['entries_moved']} entries to '{payload['target']}'")


@key_app.command("set")
def key_set(
    api_key: str = typer.Option(..., prompt=True, hide_input=True, help="OpenAI API key"),
) -> None:
    """Store the OpenAI API key in the OS keychain."""
    api_key = api_key.strip()
    if not is_valid_api_key_format(api_key):
        typer.echo("That does not look like an OpenAI API key (expected sk-...)", err=True)
        raise typer.Exit(code=1)
    store_secret(API_KEY_ACCOUNT, api_key)
    typer.echo("API key stored")


@key_app.command("clear")
def key_clear() -> None:
    """Remove the OpenAI API key from the OS keychain."""
    if not delete_secret(API_KEY_ACCOUNT):
        typer.echo("Failed to remove API key", err=True)
        raise typer.Exit(code=1)
    typer.echo("API key removed")


@key_app.command("status")
def key_status() -> None:
    """Report where an API key is configured."""
    status = {
        "keychain": get_secret(API_KEY_ACCOUNT) is not None,
        "environment": bool(os.environ.get("OPENAI_API_KEY")),
    }
    typer.echo(json.dumps(status, indent=2))


if __name__ == "__main__":
    app()
