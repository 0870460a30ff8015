"""herdsafe ask / diagnose / kb — the veterinary assistant commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

from herdsafe.cli.common import (
    USER_ENV,
    acting_user,
    console,
    db_path,
    fail,
    load_cfg,
    make_embedder,
    make_segmenter,
    open_repo,
)
from herdsafe.config import HerdsafeConfig
from herdsafe.db.repository import Repository
from herdsafe.errors import HerdsafeError, ValidationFailed
from herdsafe.ingest.bootstrap import BootstrapResult, KnowledgeBaseBootstrapper
from herdsafe.rag.engine import RagEngine

kb_app = typer.Typer(help="Manage the shared livestock-health knowledge base.", no_args_is_help=True)

DbOpt = Annotated[Optional[Path], typer.Option("--db", help="Path to the herdsafe database.")]


def _engine(cfg: HerdsafeConfig) -> RagEngine:
    return RagEngine(make_embedder(cfg), cfg.generation, cfg.retrieval)


def _bootstrapper(repo: Repository, cfg: HerdsafeConfig) -> KnowledgeBaseBootstrapper:
    return KnowledgeBaseBootstrapper(
        repo, make_embedder(cfg), make_segmenter(cfg), cfg.knowledge_base, cfg.embedding
    )


def _run_bootstrap(bootstrapper: KnowledgeBaseBootstrapper) -> BootstrapResult:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
        console=console,
    ) as prog:
        prog.add_task("Loading knowledge base…", total=None)
        return bootstrapper.initialize()


# ---------------------------------------------------------------------------
# ask
# ---------------------------------------------------------------------------


def ask_cmd(
    question: Annotated[str, typer.Argument(help="Question about your uploaded documents.")],
    user: Annotated[
        Optional[str], typer.Option("--user", "-u", envvar=USER_ENV, help="Acting user id.")
    ] = None,
    top_k: Annotated[
        Optional[int], typer.Option("--top-k", min=1, help="Chunks to use as context.")
    ] = None,
    db: DbOpt = None,
) -> None:
    """Answer a question from the acting user's uploaded documents."""
    owner = acting_user(user)
    cfg = load_cfg()
    conn, repo = open_repo(db_path(cfg, db))
    try:
        chunks = repo.get_chunks_by_owner(owner)
        with console.status("Thinking…"):
            answer = _engine(cfg).answer(question, chunks, top_k=top_k)
    except HerdsafeError as exc:
        fail(exc)
    finally:
        conn.close()

    console.print(Panel(answer.answer, title="[bold]Answer[/]", expand=False))
    if answer.sources:
        console.print("\n[bold]Sources[/]")
        for i, src in enumerate(answer.sources, start=1):
            console.print(f"  [{i}] [dim]({src.similarity:.3f})[/] {src.preview}")


# ---------------------------------------------------------------------------
# diagnose
# ---------------------------------------------------------------------------


def diagnose_cmd(
    symptoms: Annotated[list[str], typer.Argument(help="Observed symptoms, one per argument.")],
    db: DbOpt = None,
    show_raw: Annotated[bool, typer.Option("--raw", help="Also print the raw model output.")] = False,
) -> None:
    """Suggest the most likely disease for a set of symptoms."""
    cleaned = [s.strip() for s in symptoms if s.strip()]
    if not cleaned:
        fail(ValidationFailed("At least one symptom is required."))

    cfg = load_cfg()
    conn, repo = open_repo(db_path(cfg, db))
    try:
        bootstrapper = _bootstrapper(repo, cfg)
        if not bootstrapper.is_loaded():
            result = _run_bootstrap(bootstrapper)
            if not result.ok:
                console.print(f"[yellow]⚠[/] Knowledge base not loaded: {result.reason}")
        chunks = repo.get_all_chunks()
        with console.status("Diagnosing…"):
            diagnosis = _engine(cfg).diagnose(cleaned, chunks)
    except HerdsafeError as exc:
        fail(exc)
    finally:
        conn.close()

    body = (
        f"[bold]Disease:[/]     {diagnosis.disease}\n"
        f"[bold]Confidence:[/]  {diagnosis.confidence.value}\n"
        f"[bold]Explanation:[/] {diagnosis.explanation}\n"
        f"[bold]Treatment:[/]   {diagnosis.treatment}"
    )
    console.print(Panel(body, title="[bold]Diagnosis[/]", expand=False))
    console.print("[dim]Always confirm with a veterinarian before treating.[/]")
    if show_raw and diagnosis.raw_response:
        console.print(Panel(diagnosis.raw_response, title="Raw response", expand=False))


# ---------------------------------------------------------------------------
# kb
# ---------------------------------------------------------------------------


@kb_app.command("init")
def kb_init_cmd(db: DbOpt = None) -> None:
    """Load the reference PDF into the knowledge base (no-op when already loaded)."""
    cfg = load_cfg()
    conn, repo = open_repo(db_path(cfg, db))
    try:
        result = _run_bootstrap(_bootstrapper(repo, cfg))
    except HerdsafeError as exc:
        fail(exc)
    finally:
        conn.close()

    if result.status == "loaded":
        console.print(f"[green]✓[/] Knowledge base loaded ({result.chunks} chunks)")
    elif result.status == "already_loaded":
        console.print(f"[dim]↷ {result.reason}[/]")
    else:
        console.print(f"[red]✗ Knowledge base initialization failed:[/] {result.reason}")
        console.print(f"  Check knowledge_base.path in herdsafe.yaml ({cfg.knowledge_base.path}).")
        raise typer.Exit(1)


@kb_app.command("status")
def kb_status_cmd(db: DbOpt = None) -> None:
    """Show whether the knowledge base is loaded."""
    cfg = load_cfg()
    conn, repo = open_repo(db_path(cfg, db))
    try:
        document = _bootstrapper(repo, cfg).find_system_document()
        total = len(repo.list_documents())
    finally:
        conn.close()

    if document is None:
        lines = [
            "[yellow]Not loaded.[/]",
            "  Run:  herdsafe kb init",
        ]
    else:
        lines = [
            f"Document:  [bold]{document.original_name}[/]",
            f"Chunks:    [bold]{document.total_chunks}[/]",
            f"Loaded:    {document.uploaded_at:%Y-%m-%d %H:%M}" if document.uploaded_at else "",
        ]
    lines.append(f"Documents in store: {total}")
    lines.append(f"Embedding model:    {cfg.embedding.model}")
    console.print(Panel("\n".join(line for line in lines if line), title="[bold]Knowledge Base[/]", expand=False))
