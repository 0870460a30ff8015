"""herdsafe rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from herdsafe.cli.errors import describe_error
    console.print(describe_error(exc))
    raise typer.Exit(1)
"""

from __future__ import annotations

from herdsafe.errors import (
    BioSafetyBlocked,
    EmbeddingFailed,
    Forbidden,
    GenerationFailed,
    HerdsafeError,
    NotFound,
    ServiceUnavailable,
    ValidationFailed,
)


def err_no_db(db_path: str = ".herdsafe.db") -> str:
    """No database found at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  herdsafe init"
    )


def err_no_user() -> str:
    """No acting user given."""
    return (
        "[red]Error:[/] No user specified.\n"
        "  Use:  --user <id>  or  export HERDSAFE_USER=<id>"
    )


def err_config(detail: str) -> str:
    return f"[red]Error:[/] Invalid configuration.\n  {detail}"


def err_service_unavailable(detail: str) -> str:
    """Missing credential for the inference service."""
    return (
        f"[red]Error:[/] AI service unavailable. {detail}\n"
        "  Set:  export HUGGINGFACE_API_KEY=hf_..."
    )


def err_embedding_failed(detail: str) -> str:
    return (
        f"[red]Error:[/] Embedding failed. {detail}\n"
        "  Check your network connection and the embedding model, then retry."
    )


def err_generation_failed(detail: str) -> str:
    return (
        f"[red]Error:[/] Failed to generate an answer. {detail}\n"
        "  Retry later, or set generation.answer_model in herdsafe.yaml."
    )


def err_not_found(detail: str) -> str:
    return (
        f"[yellow]Not found:[/] {detail}\n"
        "  Run:  herdsafe animals show  or  herdsafe docs list  to see your records."
    )


def err_forbidden(detail: str) -> str:
    return (
        f"[red]Access denied:[/] {detail}\n"
        "  Use the --user that owns this record."
    )


def err_validation(detail: str) -> str:
    return f"[red]Invalid input:[/] {detail}\n  Fix the value and run the command again."


def err_biosafety_blocked(exc: BioSafetyBlocked) -> str:
    """Withdrawal or quarantine block, with the concrete remediation."""
    lines = [f"[bold red]{exc.args[0]}[/]", f"  {exc.details}"]
    if exc.withdrawal_ends_at is not None:
        lines.append(
            f"  Withdrawal ends: {exc.withdrawal_ends_at:%Y-%m-%d %H:%M} UTC"
        )
    if exc.reason == "quarantine":
        lines.append(f"  Run:  herdsafe animals release {exc.tag_id}")
    return "\n".join(lines)


def describe_error(exc: HerdsafeError) -> str:
    """Map a domain error onto its actionable console message."""
    detail = str(exc)
    if isinstance(exc, BioSafetyBlocked):
        return err_biosafety_blocked(exc)
    if isinstance(exc, ServiceUnavailable):
        return err_service_unavailable(detail)
    if isinstance(exc, EmbeddingFailed):
        return err_embedding_failed(detail)
    if isinstance(exc, GenerationFailed):
        return err_generation_failed(detail)
    if isinstance(exc, NotFound):
        return err_not_found(detail)
    if isinstance(exc, Forbidden):
        return err_forbidden(detail)
    if isinstance(exc, ValidationFailed):
        return err_validation(detail)
    return f"[red]Error:[/] {detail}"
