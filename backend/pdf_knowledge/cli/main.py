"""CLI entrypoint for PDF Knowledge."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

import requests
import typer

app = typer.Typer(name="pdfkb", help="PDF Knowledge command-line interface")

DEFAULT_HOST = "http://127.0.0.1:5173"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip('/')
    env_host = os.environ.get("PDFKB_HOST")
    if env_host:
        return env_host.rstrip('/')
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    resp = requests.request(method, url, timeout=120, **kwargs)
    if not resp.ok:
        try:
            detail = resp.json()
        except Exception:  # noqa: BLE001
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


def _echo(resp: requests.Response) -> None:
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def upload(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="PDF file to load"),
    ttl: Optional[int] = typer.Option(None, "--ttl", help="Session lifetime in minutes"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Upload a PDF and create a knowledge base session."""
    data: dict[str, str] = {}
    if ttl is not None:
        data["ttl_minutes"] = str(ttl)
    with path.expanduser().open("rb") as fh:
        resp = _request(
            "POST",
            "/sessions",
            host=host,
            files={"file": (path.name, fh, "application/pdf")},
            data=data,
        )
    _echo(resp)


@app.command()
def sessions(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """List active sessions."""
    _echo(_request("GET", "/sessions", host=host))


@app.command()
def info(
    session_id: str = typer.Argument(..., help="Session identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show session details and query statistics."""
    _echo(_request("GET", f"/sessions/{session_id}", host=host))


@app.command()
def query(
    session_id: str = typer.Argument(..., help="Session identifier"),
    question: str = typer.Argument(..., help="Question text"),
    max_chunks: Optional[int] = typer.Option(None, "--max-chunks", help="Chunks to use as context"),
    temperature: float = typer.Option(0.2, "--temperature", help="Sampling temperature"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Ask a question about an uploaded document."""
    payload: dict[str, object] = {"question": question, "temperature": temperature}
    if max_chunks is not None:
        payload["max_chunks"] = max_chunks
    _echo(_request("POST", f"/sessions/{session_id}/query", host=host, json=payload))


@app.command()
def extend(
    session_id: str = typer.Argument(..., help="Session identifier"),
    minutes: int = typer.Option(60, "--minutes", help="Minutes to add"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Extend a session's lifetime."""
    _echo(_request("POST", f"/sessions/{session_id}/extend", host=host, json={"minutes": minutes}))


@app.command()
def delete(
    session_id: str = typer.Argument(..., help="Session identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Discard a session."""
    _request("DELETE", f"/sessions/{session_id}", host=host)
    typer.echo(json.dumps({"status": "ok"}))


@app.command()
def quiz(
    session_id: str = typer.Argument(..., help="Session identifier"),
    count: int = typer.Option(5, "--count", help="Number of questions"),
    difficulty: str = typer.Option("medium", "--difficulty", help="easy, medium or hard"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Generate quiz questions from the document."""
    payload = {"count": count, "difficulty": difficulty}
    _echo(_request("POST", f"/sessions/{session_id}/quiz", host=host, json=payload))


@app.command()
def flashcards(
    session_id: str = typer.Argument(..., help="Session identifier"),
    count: int = typer.Option(10, "--count", help="Number of flashcards"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Generate flashcards from the document."""
    _echo(_request("POST", f"/sessions/{session_id}/flashcards", host=host, json={"count": count}))


@app.command()
def chapter(
    session_id: str = typer.Argument(..., help="Session identifier"),
    name: str = typer.Argument(..., help="Chapter label fragment"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show chunks belonging to a chapter."""
    _echo(_request("GET", f"/sessions/{session_id}/chapters", host=host, params={"q": name}))


@app.command()
def summarize(
    session_id: str = typer.Argument(..., help="Session identifier"),
    name: str = typer.Argument(..., help="Chapter label fragment or page number"),
    max_words: int = typer.Option(500, "--max-words", help="Approximate summary length"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Summarise a chapter or page."""
    payload = {"chapter": name, "max_words": max_words}
    resp = _request("POST", f"/sessions/{session_id}/summary", host=host, json=payload)
    typer.echo(resp.json()["summary"])


if __name__ == "__main__":
    app()
