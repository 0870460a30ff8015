"""Product listing behind the bio-safety gate."""

from __future__ import annotations

import logging

from herdsafe.biosafety.gatekeeper import BioSafetyGate
from herdsafe.db.models import NewProduct, Product, User
from herdsafe.db.protocols import ProductStore
from herdsafe.errors import HerdsafeError, ValidationFailed

logger = logging.getLogger(__name__)

_MAX_ATTEMPTS = 5


def list_product(
    repo: ProductStore,
    gate: BioSafetyGate,
    seller: User,
    animal_id: str,
    product_type: str,
    total_quantity: float,
    price_per_unit: float,
    unit: str = "liters",
    min_order_quantity: float = 1,
    description: str = "",
) -> Product:
    """Create a marketplace listing for *animal_id* if the gate clears it.

    Raises:
        ValidationFailed: Blank product type or a non-positive quantity or price.
        NotFound / Forbidden / BioSafetyBlocked: From the gate, which is
            consulted again if the animal changes status before the insert.
    """
    product_type = (product_type or "").strip()
    if not product_type:
        raise ValidationFailed("Product type is required.")
    if total_quantity <= 0:
        raise ValidationFailed("Quantity must be greater than zero.")
    if price_per_unit <= 0:
        raise ValidationFailed("Price per unit must be greater than zero.")
    if min_order_quantity <= 0:
        raise ValidationFailed("Minimum order quantity must be greater than zero.")

    for _ in range(_MAX_ATTEMPTS):
        clearance = gate.evaluate(animal_id, seller)
        product = repo.create_product(
            NewProduct(
                animal_id=clearance.animal.id,
                seller_id=seller.id,
                product_type=product_type,
                total_quantity=total_quantity,
                price_per_unit=price_per_unit,
                unit=unit,
                min_order_quantity=min_order_quantity,
                description=description,
            ),
            verified_safe=clearance.verified_safe,
        )
        if product is None:
            logger.debug("Status of %s changed after clearance; re-evaluating", clearance.animal.tag_id)
            continue
        logger.info(
            "Listed %s %s of %s from %s",
            product.total_quantity,
            product.unit,
            product.product_type,
            clearance.animal.tag_id,
        )
        return product

    raise HerdsafeError(
        f"Animal '{animal_id}' changed status {_MAX_ATTEMPTS} times while listing."
    )
