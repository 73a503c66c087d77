"""Typer-based CLI for building the pattern site and chatting against its index."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer

from obn_wiki.config import BuildSettings, ChatSettings
from obn_wiki.credentials import CredentialStore
from obn_wiki.emitter import CorpusNotFoundError, build_site
from obn_wiki.index_cache import PatternIndexCache, read_pattern_index
from obn_wiki.models import CATEGORIES
from obn_wiki.scorer import DEFAULT_TOP_K, find_relevant_patterns
from obn_wiki.session import ChatSession

app = typer.Typer(add_completion=False, help="obn-wiki: build the OBN pattern site and ask it questions")

EXIT_COMMANDS = {"/quit", "/exit"}
CLEAR_KEY_COMMAND = "/clear-key"


def _echo_step(step: int, total: int, message: str) -> None:
    """Print a normalized progress step line."""
    typer.echo(f"[{step}/{total}] {message}")


def _configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", force=True)


@app.callback()
def main(
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Repeat for more log output"),
) -> None:
    _configure_logging(verbose)


def _chat_settings(site_url: str | None, index_path: Path | None, model: str | None) -> ChatSettings:
    return ChatSettings.from_env(site_url=site_url, index_path=index_path, model=model)


def _session(settings: ChatSettings) -> ChatSession:
    return ChatSession(settings, CredentialStore(), index_cache=PatternIndexCache())


def _print_sources(session: ChatSession) -> None:
    if not session.last_sources:
        return
    typer.echo("\nSources:")
    for entry in session.last_sources:
        typer.echo(f"  - {entry.title} ({entry.category_label}) {entry.url}")


async def _ask_once(session: ChatSession, question: str) -> bool:
    reply = await session.submit(question, on_update=lambda delta: typer.echo(delta, nl=False))
    typer.echo("")
    if reply is None:
        typer.echo(f"Error: {session.last_error}", err=True)
        return False
    _print_sources(session)
    return True


@app.command("build")
def build(
    root: Path = typer.Option(Path("."), "--root", help="Repository root containing patterns/"),
) -> None:
    """Transform the pattern corpus into site content and pattern-index.json."""
    settings = BuildSettings(root=root)

    _echo_step(1, 2, f"Processing patterns from {settings.patterns_dir}")
    try:
        report = build_site(settings, progress_callback=lambda msg: typer.echo(f"    {msg}"))
    except CorpusNotFoundError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    _echo_step(2, 2, "Writing pattern index")
    typer.echo(
        "Build complete. "
        f"patterns={len(report.patterns)} skipped={len(report.skipped)} "
        f"categories={len(CATEGORIES)} docs={len(report.extra_docs)} index={report.index_path}"
    )


@app.command("search")
def search(
    query: str = typer.Argument(..., help="Free-text question or keywords"),
    index_path: Path = typer.Option(
        BuildSettings().index_path, "--index", help="Local pattern-index.json produced by build"
    ),
    top_k: int = typer.Option(DEFAULT_TOP_K, "--top-k", min=1, help="Maximum results"),
) -> None:
    """Rank patterns in a local index against a query, without calling a model."""
    if not index_path.exists():
        raise typer.BadParameter(f"Index not found: {index_path}. Run build first.")

    entries = asyncio.run(read_pattern_index(index_path))
    matches = find_relevant_patterns(query, entries, top_k=top_k)
    if not matches:
        typer.echo("No relevant patterns found.")
        return
    for rank, entry in enumerate(matches, start=1):
        typer.echo(f"{rank}. {entry.title} [{entry.category_label}, {entry.status}] {entry.url}")
        typer.echo(f"   {entry.description}")


@app.command("ask")
def ask(
    question: str = typer.Argument(..., help="Question to answer from the patterns"),
    site_url: str | None = typer.Option(None, "--site-url", help="Site serving pages and the index"),
    index_path: Path | None = typer.Option(None, "--index", help="Read the index from a local file"),
    model: str | None = typer.Option(None, "--model", help="Chat model name"),
) -> None:
    """Answer one question, streaming the reply to the terminal."""
    session = _session(_chat_settings(site_url, index_path, model))
    if session.credentials.load() is None:
        raise typer.BadParameter("No API key saved. Run `obn-wiki set-key` first.")
    if not asyncio.run(_ask_once(session, question)):
        raise typer.Exit(code=1)


@app.command("chat")
def chat(
    site_url: str | None = typer.Option(None, "--site-url", help="Site serving pages and the index"),
    index_path: Path | None = typer.Option(None, "--index", help="Read the index from a local file"),
    model: str | None = typer.Option(None, "--model", help="Chat model name"),
) -> None:
    """Interactive conversation; /clear-key forgets the key, /quit exits."""
    session = _session(_chat_settings(site_url, index_path, model))
    asyncio.run(_chat_loop(session))


async def _chat_loop(session: ChatSession) -> None:
    while True:
        if session.credentials.load() is None:
            api_key = typer.prompt("OpenRouter API key", hide_input=True).strip()
            if not api_key:
                continue
            session.save_credential(api_key)
            typer.echo("Key saved locally. It is only sent to the chat provider.")

        line = typer.prompt("you", prompt_suffix="> ").strip()
        if not line:
            continue
        if line in EXIT_COMMANDS:
            return
        if line == CLEAR_KEY_COMMAND:
            session.clear_credential()
            typer.echo("Key removed and conversation cleared.")
            continue

        typer.echo("assistant> ", nl=False)
        await _ask_once(session, line)


@app.command("set-key")
def set_key(
    api_key: str = typer.Option(..., prompt=True, hide_input=True, help="OpenRouter API key"),
) -> None:
    """Store the chat provider key in local user storage."""
    store = CredentialStore()
    try:
        store.save(api_key)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"Key saved: {store.path}")


@app.command("clear-key")
def clear_key() -> None:
    """Remove the stored chat provider key."""
    store = CredentialStore()
    store.clear()
    typer.echo(f"Key removed: {store.path}")


@app.command("doctor")
def doctor(
    root: Path = typer.Option(Path("."), "--root", help="Repository root containing patterns/"),
) -> None:
    """Print local environment diagnostics used by the CLI."""
    build_settings = BuildSettings(root=root)
    chat_settings = ChatSettings.from_env()
    store = CredentialStore()
    typer.echo(f"Corpus exists: {build_settings.patterns_dir.is_dir()} ({build_settings.patterns_dir})")
    typer.echo(f"Index exists: {build_settings.index_path.exists()} ({build_settings.index_path})")
    typer.echo(f"API key saved: {store.load() is not None} ({store.path})")
    typer.echo(f"Site URL: {chat_settings.site_url}")
    typer.echo(f"Chat model: {chat_settings.model}")


if __name__ == "__main__":
    app()
