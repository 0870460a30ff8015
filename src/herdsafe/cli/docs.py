"""herdsafe docs — upload, list and remove a user's reference PDFs."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

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
from herdsafe.errors import HerdsafeError
from herdsafe.ingest.pipeline import ingest_upload, remove_document

docs_app = typer.Typer(help="Manage uploaded reference documents.", no_args_is_help=True)

UserOpt = Annotated[
    Optional[str], typer.Option("--user", "-u", envvar=USER_ENV, help="Acting user id.")
]
DbOpt = Annotated[Optional[Path], typer.Option("--db", help="Path to the herdsafe database.")]


@docs_app.command("upload")
def upload_cmd(
    path: Annotated[Path, typer.Argument(help="PDF file to upload.")],
    user: UserOpt = None,
    description: Annotated[str, typer.Option("--description", "-d")] = "",
    db: DbOpt = None,
) -> None:
    """Upload a PDF, split it into chunks and embed them."""
    owner = acting_user(user)
    cfg = load_cfg()
    conn, repo = open_repo(db_path(cfg, db))
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            transient=True,
            console=console,
        ) as prog:
            task = prog.add_task(f"Embedding {path.name}…", total=None)

            def _advance(index: int) -> None:
                prog.update(task, completed=index + 1)

            result = ingest_upload(
                repo,
                make_embedder(cfg),
                make_segmenter(cfg),
                path=path,
                owner=owner,
                uploads_dir=Path(cfg.storage.uploads_dir),
                max_bytes=int(cfg.storage.max_upload_mb * 1024 * 1024),
                description=description,
                inter_delay_ms=cfg.embedding.batch_delay_ms,
                on_progress=_advance,
            )
    except HerdsafeError as exc:
        fail(exc)
    finally:
        conn.close()

    console.print(f"[green]✓[/] Uploaded [bold]{result.document.original_name}[/]")
    console.print(f"  Document: {result.document.id}")
    console.print(f"  Chunks: {result.chunks_created}", end="")
    if result.chunks_failed:
        console.print(f"  [yellow]({result.chunks_failed} failed to embed)[/]")
    else:
        console.print()


@docs_app.command("list")
def list_cmd(user: UserOpt = None, db: DbOpt = None) -> None:
    """List the acting user's documents, newest first."""
    owner = acting_user(user)
    cfg = load_cfg()
    conn, repo = open_repo(db_path(cfg, db))
    try:
        documents = repo.get_documents_by_owner(owner)
    finally:
        conn.close()

    if not documents:
        console.print("[dim]No documents uploaded yet.[/]")
        console.print("  Run:  herdsafe docs upload <file.pdf>")
        return

    table = Table(title="Documents")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Chunks", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Uploaded")
    for doc in documents:
        table.add_row(
            doc.id,
            doc.original_name,
            str(doc.total_chunks),
            f"{doc.file_size / 1024:.0f} KB",
            f"{doc.uploaded_at:%Y-%m-%d %H:%M}" if doc.uploaded_at else "",
        )
    console.print(table)


@docs_app.command("remove")
def remove_cmd(
    document_id: Annotated[str, typer.Argument(help="Document id (see docs list).")],
    user: UserOpt = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
    db: DbOpt = None,
) -> None:
    """Remove a document, its chunks and its stored file."""
    owner = acting_user(user)
    cfg = load_cfg()
    conn, repo = open_repo(db_path(cfg, db))
    try:
        if not yes and not typer.confirm(f"Remove document {document_id}?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)
        deleted = remove_document(repo, document_id, owner, Path(cfg.storage.uploads_dir))
    except HerdsafeError as exc:
        fail(exc)
    finally:
        conn.close()

    console.print(f"[green]✓[/] Removed document {document_id} ({deleted} chunks deleted)")
