"""herdsafe market — marketplace listings behind the bio-safety gate."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer

from herdsafe.biosafety.gatekeeper import BioSafetyGate
from herdsafe.biosafety.marketplace import list_product
from herdsafe.cli.common import USER_ENV, acting_user, console, db_path, fail, load_cfg, open_repo
from herdsafe.errors import HerdsafeError, NotFound

market_app = typer.Typer(help="List animal products on the marketplace.", no_args_is_help=True)


@market_app.command("list-product")
def list_product_cmd(
    tag_id: Annotated[str, typer.Argument(help="Tag id of the source animal.")],
    product_type: Annotated[str, typer.Option("--type", "-t", help="e.g. milk, eggs, wool.")],
    quantity: Annotated[float, typer.Option("--quantity", "-q", help="Total quantity.")],
    price: Annotated[float, typer.Option("--price", "-p", help="Price per unit.")],
    unit: Annotated[str, typer.Option("--unit")] = "liters",
    min_order: Annotated[float, typer.Option("--min-order", help="Minimum order quantity.")] = 1.0,
    description: Annotated[str, typer.Option("--description", "-d")] = "",
    user: Annotated[
        Optional[str], typer.Option("--user", "-u", envvar=USER_ENV, help="Acting user id.")
    ] = None,
    db: Annotated[Optional[Path], typer.Option("--db", help="Path to the herdsafe database.")] = None,
) -> None:
    """List a product; refused while the animal is in withdrawal or quarantine."""
    seller = acting_user(user)
    cfg = load_cfg()
    conn, repo = open_repo(db_path(cfg, db))
    try:
        animal = repo.get_animal_by_tag(tag_id)
        if animal is None:
            raise NotFound(f"Animal '{tag_id}' not found.")
        product = list_product(
            repo,
            BioSafetyGate(repo),
            seller,
            animal.id,
            product_type,
            quantity,
            price,
            unit=unit,
            min_order_quantity=min_order,
            description=description,
        )
    except HerdsafeError as exc:
        fail(exc)
    finally:
        conn.close()

    console.print(f"[green]✓[/] Listed {product.total_quantity:g} {product.unit} of {product.product_type}")
    console.print(f"  Product: {product.id}")
    console.print("  [green]Verified safe[/] (no active withdrawal or quarantine)")
