"""Tests for herdsafe market list-product."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from typer.testing import CliRunner

from herdsafe.cli.main import app
from herdsafe.db.models import BioSafetyStatus, utcnow

runner = CliRunner()


def _invoke(db_file: Path, *args: str, user: str = "farmer-1"):
    return runner.invoke(app, [*args, "--db", str(db_file), "--user", user])


def _list(db_file: Path, tag: str = "COW-1", user: str = "farmer-1"):
    return _invoke(db_file, "market", "list-product", tag, "-t", "milk", "-q", "40", "-p", "0.8", user=user)


def _register(db_file: Path, tag: str = "COW-1") -> None:
    result = _invoke(db_file, "animals", "register", tag, "--species", "cattle")
    assert result.exit_code == 0, result.output


def test_list_product_for_healthy_animal(db_file, cli_repo) -> None:
    _register(db_file)
    result = _list(db_file)

    assert result.exit_code == 0, result.output
    assert "Listed 40 liters of milk" in result.output
    assert "Verified safe" in result.output
    (product,) = cli_repo.list_products_by_seller("farmer-1")
    assert product.is_verified_safe is True


def test_list_product_blocked_after_medication(db_file, cli_repo) -> None:
    _register(db_file)
    _invoke(db_file, "animals", "medicate", "COW-1", "-m", "Oxytetracycline", "-w", "7")

    result = _list(db_file)

    assert result.exit_code == 1
    assert "CRITICAL: COW-1 is under medical withdrawal period." in result.output
    assert "7 more day(s)" in result.output
    assert "Withdrawal ends:" in result.output
    assert cli_repo.list_products_by_seller("farmer-1") == []


def test_list_product_allowed_once_lock_expired(db_file, cli_repo) -> None:
    _register(db_file)
    animal = cli_repo.get_animal_by_tag("COW-1")
    cli_repo.set_animal_status(animal.id, BioSafetyStatus.WITHDRAWAL_LOCK, utcnow() - timedelta(minutes=5))

    result = _list(db_file)

    assert result.exit_code == 0, result.output
    assert cli_repo.get_animal_by_tag("COW-1").status is BioSafetyStatus.HEALTHY


def test_list_product_blocked_by_quarantine(db_file) -> None:
    _register(db_file)
    _invoke(db_file, "animals", "quarantine", "COW-1")

    result = _list(db_file)

    assert result.exit_code == 1
    assert "QUARANTINE" in result.output
    assert "herdsafe animals release COW-1" in result.output


def test_list_product_unknown_animal(db_file) -> None:
    result = _list(db_file, tag="NOPE")
    assert result.exit_code == 1
    assert "not found" in result.output


def test_list_product_other_owner(db_file) -> None:
    _register(db_file)
    result = _list(db_file, user="farmer-2")
    assert result.exit_code == 1
    assert "Access denied" in result.output


def test_list_product_invalid_quantity(db_file) -> None:
    _register(db_file)
    result = _invoke(db_file, "market", "list-product", "COW-1", "-t", "milk", "-q", "0", "-p", "0.8")
    assert result.exit_code == 1
    assert "Invalid input" in result.output
