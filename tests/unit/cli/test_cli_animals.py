"""Tests for herdsafe animals commands."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from typer.testing import CliRunner

from herdsafe.cli.main import app
from herdsafe.db.models import BioSafetyStatus, utcnow

runner = CliRunner()


def _run(db_file: Path, *args: str, user: str | None = "farmer-1"):
    argv = ["animals", *args, "--db", str(db_file)]
    if user is not None:
        argv += ["--user", user]
    return runner.invoke(app, argv)


def _register(db_file: Path, tag: str = "COW-1", user: str = "farmer-1"):
    return _run(db_file, "register", tag, "--species", "cattle", "--breed", "Gir", user=user)


# ---------------------------------------------------------------------------
# register / show
# ---------------------------------------------------------------------------


def test_register_creates_animal(db_file, cli_repo) -> None:
    result = _run(db_file, "register", "COW-1", "--species", "cattle", "--born", "2022-05-01")

    assert result.exit_code == 0, result.output
    assert "Registered COW-1" in result.output
    animal = cli_repo.get_animal_by_tag("COW-1")
    assert animal.owner_id == "farmer-1"
    assert animal.status is BioSafetyStatus.HEALTHY
    assert animal.date_of_birth.year == 2022


def test_register_duplicate_tag_exits_1(db_file) -> None:
    _register(db_file)
    result = _register(db_file)
    assert result.exit_code == 1
    assert "already registered" in result.output


def test_register_without_user_exits_1(db_file) -> None:
    result = _run(db_file, "register", "COW-1", "--species", "cattle", user=None)
    assert result.exit_code == 1
    assert "HERDSAFE_USER" in result.output


def test_user_from_environment(db_file, cli_repo, monkeypatch) -> None:
    monkeypatch.setenv("HERDSAFE_USER", "farmer-9")
    result = _run(db_file, "register", "GOAT-1", "--species", "goat", user=None)
    assert result.exit_code == 0, result.output
    assert cli_repo.get_animal_by_tag("GOAT-1").owner_id == "farmer-9"


def test_missing_db_exits_1(project: Path) -> None:
    result = _run(project / "missing.db", "show")
    assert result.exit_code == 1
    assert "herdsafe init" in result.output


def test_show_empty_herd(db_file) -> None:
    result = _run(db_file, "show")
    assert result.exit_code == 0
    assert "No animals registered" in result.output


def test_show_lists_only_own_animals(db_file) -> None:
    _register(db_file, "COW-1")
    _register(db_file, "COW-2", user="farmer-2")
    result = _run(db_file, "show")
    assert "COW-1" in result.output
    assert "COW-2" not in result.output


def test_show_other_users_animal_is_not_found(db_file) -> None:
    _register(db_file, "COW-2", user="farmer-2")
    result = _run(db_file, "show", "COW-2")
    assert result.exit_code == 1
    assert "not found" in result.output


# ---------------------------------------------------------------------------
# medicate
# ---------------------------------------------------------------------------


def test_medicate_with_withdrawal_locks(db_file, cli_repo) -> None:
    _register(db_file)
    result = _run(db_file, "medicate", "COW-1", "-m", "Oxytetracycline", "-w", "7", "--dosage", "10ml")

    assert result.exit_code == 0, result.output
    assert "Recorded Oxytetracycline" in result.output
    assert "WITHDRAWAL_LOCK" in result.output
    animal = cli_repo.get_animal_by_tag("COW-1")
    assert animal.status is BioSafetyStatus.WITHDRAWAL_LOCK
    assert animal.health_score == 90

    shown = _run(db_file, "show", "COW-1")
    assert "Oxytetracycline" in shown.output
    assert "7 d" in shown.output


def test_medicate_negative_days_exits_1(db_file, cli_repo) -> None:
    _register(db_file)
    result = _run(db_file, "medicate", "COW-1", "-m", "Penicillin", "-w", "-1")
    assert result.exit_code == 1
    assert "Invalid input" in result.output
    assert cli_repo.list_medical_logs(cli_repo.get_animal_by_tag("COW-1").id) == []


def test_medicate_unknown_tag_exits_1(db_file) -> None:
    result = _run(db_file, "medicate", "NOPE", "-m", "Penicillin")
    assert result.exit_code == 1
    assert "not found" in result.output


def test_medicate_someone_elses_animal_exits_1(db_file) -> None:
    _register(db_file, "COW-2", user="farmer-2")
    result = _run(db_file, "medicate", "COW-2", "-m", "Penicillin")
    assert result.exit_code == 1
    assert "Access denied" in result.output


# ---------------------------------------------------------------------------
# quarantine / release / sweep
# ---------------------------------------------------------------------------


def test_quarantine_and_release(db_file, cli_repo) -> None:
    _register(db_file)
    result = _run(db_file, "quarantine", "COW-1")
    assert result.exit_code == 0, result.output
    assert cli_repo.get_animal_by_tag("COW-1").status is BioSafetyStatus.QUARANTINE

    result = _run(db_file, "release", "COW-1")
    assert result.exit_code == 0, result.output
    assert cli_repo.get_animal_by_tag("COW-1").status is BioSafetyStatus.HEALTHY


def test_release_healthy_animal_exits_1(db_file) -> None:
    _register(db_file)
    result = _run(db_file, "release", "COW-1")
    assert result.exit_code == 1
    assert "not in quarantine" in result.output


def test_sweep_unlocks_expired(db_file, cli_repo) -> None:
    _register(db_file, "COW-1")
    _register(db_file, "COW-2")
    past = utcnow() - timedelta(hours=1)
    future = utcnow() + timedelta(days=3)
    cli_repo.set_animal_status(cli_repo.get_animal_by_tag("COW-1").id, BioSafetyStatus.WITHDRAWAL_LOCK, past)
    cli_repo.set_animal_status(cli_repo.get_animal_by_tag("COW-2").id, BioSafetyStatus.WITHDRAWAL_LOCK, future)

    result = runner.invoke(app, ["animals", "sweep", "--db", str(db_file)])

    assert result.exit_code == 0, result.output
    assert "Unlocked 1 animal(s)" in result.output
    assert cli_repo.get_animal_by_tag("COW-1").status is BioSafetyStatus.HEALTHY
    assert cli_repo.get_animal_by_tag("COW-2").status is BioSafetyStatus.WITHDRAWAL_LOCK
