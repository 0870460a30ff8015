"""herdsafe init — project scaffold.

Creates:
  .herdsafe.db           — empty database with schema
  herdsafe.yaml          — project config template (no API keys)
  .herdsafe/uploads/     — stored copies of uploaded PDFs
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from herdsafe.cli.common import console, open_db
from herdsafe.config import HerdsafeConfig, write_project_config

_DEFAULT_PROJECT_DIR = Path(".")


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_PROJECT_DIR,
) -> None:
    """Initialize a herdsafe project: database, config and uploads directory."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)
    defaults = HerdsafeConfig()

    db_file = project_dir / defaults.storage.database
    existed = db_file.exists()
    conn = open_db(db_file, must_exist=False)
    conn.close()
    mark = "[yellow]↷[/] (already present, schema up to date)" if existed else "[green]✓[/]"
    console.print(f"  {mark} {defaults.storage.database}")

    cfg_path = write_project_config(project_dir)
    console.print(f"  [green]✓[/] {cfg_path.name}")

    uploads = project_dir / defaults.storage.uploads_dir
    uploads.mkdir(parents=True, exist_ok=True)
    console.print(f"  [green]✓[/] {defaults.storage.uploads_dir}/")

    _update_gitignore(project_dir, [defaults.storage.database, ".herdsafe/"])

    console.print(f"\n[bold green]✓ herdsafe project initialized in {project_dir}[/]")
    console.print("\nNext steps:")
    console.print("  1. export HUGGINGFACE_API_KEY=hf_...")
    console.print("  2. herdsafe kb init                         (load the reference knowledge base)")
    console.print("  3. herdsafe docs upload <file.pdf> --user <id>")
    console.print("  4. herdsafe animals register <tag> --species cattle --user <id>")


def _update_gitignore(project_dir: Path, entries: list[str]) -> None:
    """Add herdsafe entries to .gitignore if it already exists."""
    gitignore = project_dir / ".gitignore"
    if not gitignore.exists():
        return
    existing = gitignore.read_text(encoding="utf-8")
    to_add = [e for e in entries if e not in existing]
    if to_add:
        with gitignore.open("a", encoding="utf-8") as f:
            f.write("\n# herdsafe\n")
            for entry in to_add:
                f.write(f"{entry}\n")
        console.print("  [green]✓[/] .gitignore (updated with herdsafe entries)")
