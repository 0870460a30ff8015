"""herdsafe animals — herd registry, medication records and bio-safety status.

Animals are addressed by their tag id on the command line.
"""

from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.panel import Panel
from rich.table import Table

from herdsafe.biosafety.gatekeeper import BioSafetyGate, days_remaining
from herdsafe.cli.common import USER_ENV, acting_user, console, db_path, fail, load_cfg, open_repo
from herdsafe.db.models import Animal, BioSafetyStatus, utcnow
from herdsafe.db.repository import Repository
from herdsafe.errors import HerdsafeError, NotFound, ValidationFailed

animals_app = typer.Typer(help="Register animals and track their bio-safety status.", no_args_is_help=True)

UserOpt = Annotated[
    Optional[str], typer.Option("--user", "-u", envvar=USER_ENV, help="Acting user id.")
]
DbOpt = Annotated[Optional[Path], typer.Option("--db", help="Path to the herdsafe database.")]
TagArg = Annotated[str, typer.Argument(help="Animal tag id.")]

_STATUS_STYLE = {
    BioSafetyStatus.HEALTHY: "green",
    BioSafetyStatus.WITHDRAWAL_LOCK: "yellow",
    BioSafetyStatus.QUARANTINE: "red",
}


def _animal_id(repo: Repository, tag_id: str) -> str:
    animal = repo.get_animal_by_tag(tag_id)
    if animal is None:
        raise NotFound(f"Animal '{tag_id}' not found.")
    return animal.id


def _status_text(animal: Animal) -> str:
    style = _STATUS_STYLE[animal.status]
    text = f"[{style}]{animal.status.value}[/]"
    if animal.status is BioSafetyStatus.WITHDRAWAL_LOCK and animal.withdrawal_ends_at:
        left = max(0, days_remaining(animal.withdrawal_ends_at, utcnow()))
        text += f" until {animal.withdrawal_ends_at:%Y-%m-%d %H:%M} UTC ({left} day(s))"
    return text


@animals_app.command("register")
def register_cmd(
    tag_id: TagArg,
    species: Annotated[str, typer.Option("--species", "-s", help="e.g. cattle, goat.")],
    user: UserOpt = None,
    breed: Annotated[str, typer.Option("--breed")] = "",
    lineage: Annotated[str, typer.Option("--lineage", help="Genetic lineage.")] = "",
    born: Annotated[
        Optional[datetime], typer.Option("--born", formats=["%Y-%m-%d"], help="Date of birth.")
    ] = None,
    db: DbOpt = None,
) -> None:
    """Register a new animal for the acting user."""
    owner = acting_user(user)
    cfg = load_cfg()
    conn, repo = open_repo(db_path(cfg, db))
    try:
        if not tag_id.strip() or not species.strip():
            raise ValidationFailed("Tag id and species are required.")
        animal = Animal(
            id=str(uuid.uuid4()),
            tag_id=tag_id.strip(),
            owner_id=owner.id,
            species=species.strip(),
            breed=breed,
            genetic_lineage=lineage,
            date_of_birth=born,
        )
        repo.create_animal(animal)
    except sqlite3.IntegrityError as exc:
        console.print(f"[red]Error:[/] Tag '{tag_id}' is already registered.")
        raise typer.Exit(1) from exc
    except HerdsafeError as exc:
        fail(exc)
    finally:
        conn.close()

    console.print(f"[green]✓[/] Registered {animal.tag_id} ({animal.species})")


@animals_app.command("show")
def show_cmd(
    tag_id: Annotated[Optional[str], typer.Argument(help="Tag id; omit to list the herd.")] = None,
    user: UserOpt = None,
    db: DbOpt = None,
) -> None:
    """Show one animal with its medical history, or list the acting user's herd."""
    owner = acting_user(user)
    cfg = load_cfg()
    conn, repo = open_repo(db_path(cfg, db))
    try:
        if tag_id is None:
            _show_herd(repo.list_animals_by_owner(owner.id))
            return
        animal = repo.get_animal_by_tag(tag_id)
        if animal is None or animal.owner_id != owner.id:
            raise NotFound(f"Animal '{tag_id}' not found.")
        logs = repo.list_medical_logs(animal.id)
    except HerdsafeError as exc:
        fail(exc)
    finally:
        conn.close()

    lines = [
        f"Tag:      [bold]{animal.tag_id}[/]",
        f"Species:  {animal.species}" + (f" / {animal.breed}" if animal.breed else ""),
        f"Health:   {animal.health_score}/100",
        f"Status:   {_status_text(animal)}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Animal[/]", expand=False))

    if not logs:
        console.print("[dim]No medical records.[/]")
        return
    table = Table(title="Medical history")
    table.add_column("Date")
    table.add_column("Medicine")
    table.add_column("Dosage")
    table.add_column("Withdrawal", justify="right")
    for log in logs:
        table.add_row(
            f"{log.administered_at:%Y-%m-%d}",
            log.medicine_name,
            log.dosage,
            f"{log.withdrawal_days} d",
        )
    console.print(table)


def _show_herd(animals: list[Animal]) -> None:
    if not animals:
        console.print("[dim]No animals registered.[/]")
        console.print("  Run:  herdsafe animals register <tag> --species <species>")
        return
    table = Table(title="Herd")
    table.add_column("Tag")
    table.add_column("Species")
    table.add_column("Health", justify="right")
    table.add_column("Status")
    for animal in animals:
        table.add_row(animal.tag_id, animal.species, str(animal.health_score), _status_text(animal))
    console.print(table)


@animals_app.command("medicate")
def medicate_cmd(
    tag_id: TagArg,
    medicine: Annotated[str, typer.Option("--medicine", "-m", help="Medicine name.")],
    withdrawal_days: Annotated[
        int, typer.Option("--withdrawal-days", "-w", help="Withdrawal period in days.")
    ] = 0,
    dosage: Annotated[str, typer.Option("--dosage")] = "",
    notes: Annotated[str, typer.Option("--notes")] = "",
    given_at: Annotated[
        Optional[datetime],
        typer.Option("--at", formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M"], help="Administration time (UTC)."),
    ] = None,
    user: UserOpt = None,
    db: DbOpt = None,
) -> None:
    """Record a medication; a withdrawal period locks the animal's products."""
    owner = acting_user(user)
    cfg = load_cfg()
    conn, repo = open_repo(db_path(cfg, db))
    try:
        outcome = BioSafetyGate(repo).record_medication(
            _animal_id(repo, tag_id),
            owner,
            medicine,
            dosage=dosage,
            withdrawal_days=withdrawal_days,
            administered_at=given_at,
            notes=notes,
        )
    except HerdsafeError as exc:
        fail(exc)
    finally:
        conn.close()

    console.print(f"[green]✓[/] Recorded {outcome.log.medicine_name} for {outcome.animal.tag_id}")
    console.print(
        f"  Health: {outcome.animal.health_score}/100 (-{outcome.health_impact})"
    )
    console.print(f"  Status: {_status_text(outcome.animal)}")


@animals_app.command("quarantine")
def quarantine_cmd(tag_id: TagArg, user: UserOpt = None, db: DbOpt = None) -> None:
    """Place an animal in quarantine; its products cannot be listed."""
    owner = acting_user(user)
    cfg = load_cfg()
    conn, repo = open_repo(db_path(cfg, db))
    try:
        animal = BioSafetyGate(repo).quarantine(_animal_id(repo, tag_id), owner)
    except HerdsafeError as exc:
        fail(exc)
    finally:
        conn.close()
    console.print(f"[red]■[/] {animal.tag_id} is now in QUARANTINE")


@animals_app.command("release")
def release_cmd(tag_id: TagArg, user: UserOpt = None, db: DbOpt = None) -> None:
    """Release an animal from quarantine."""
    owner = acting_user(user)
    cfg = load_cfg()
    conn, repo = open_repo(db_path(cfg, db))
    try:
        animal = BioSafetyGate(repo).release(_animal_id(repo, tag_id), owner)
    except HerdsafeError as exc:
        fail(exc)
    finally:
        conn.close()
    console.print(f"[green]✓[/] {animal.tag_id} released from quarantine")


@animals_app.command("sweep")
def sweep_cmd(db: DbOpt = None) -> None:
    """Unlock every animal whose withdrawal period has ended.

    Meant to run from a scheduler (cron, systemd timer) every
    biosafety.sweep_interval_minutes.
    """
    cfg = load_cfg()
    conn, repo = open_repo(db_path(cfg, db))
    try:
        count = BioSafetyGate(repo).sweep_expired()
    finally:
        conn.close()
    console.print(f"[green]✓[/] Unlocked {count} animal(s) with expired withdrawal periods")
