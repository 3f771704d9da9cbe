"""
Variant combinations

Combinations are the cartesian product of option values. Each combination
is identified by a key of sorted "type:value" pairs joined with "|".
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.errors import BusinessLogicError
from marketplace.models import Product, ProductVariant, VariantOption
from marketplace.services.stock import adjust_stock

logger = logging.getLogger(__name__)

MAX_VARIANT_TYPES = 3


def generate_combinations(options: List[dict]) -> List[Dict[str, str]]:
    """
    Cartesian product of option groups

    Args:
        options: [{"type": "color", "values": ["red", "blue"]}, ...]

    Returns:
        [{"color": "red", "size": "s"}, ...] in group order then value order
    """
    groups = [g for g in options if g.get("values")]
    if not groups:
        return []

    combinations: List[Dict[str, str]] = [{}]
    for group in groups:
        combinations = [
            {**combo, group["type"]: value}
            for combo in combinations
            for value in group["values"]
        ]
    return combinations


def combination_key(option_values: Dict[str, str]) -> str:
    return "|".join(f"{t}:{option_values[t]}" for t in sorted(option_values))


def combination_name(option_values: Dict[str, str], display_names: Optional[Dict[tuple, str]] = None) -> str:
    """'Red / Large' style label, in insertion order"""
    display_names = display_names or {}
    parts = [display_names.get((t, v)) or str(v).replace("-", " ").title() for t, v in option_values.items()]
    return " / ".join(parts)


async def create_combinations(
    db: AsyncSession,
    product: Product,
    variant_types: List[str],
    options: List[dict],
    generate: bool = True,
    default_price: Optional[Decimal] = None,
    default_quantity: int = 0,
    default_sku: Optional[str] = None,
) -> List[ProductVariant]:
    """Record option values and create one variant per new combination

    options items: {"type", "values": [{"value", "display_name", "hex_color", "image_url", "icon"}]}
    Existing combination keys are left untouched. Does not commit.
    """
    if (product.quantity_on_hold or 0) > 0:
        raise BusinessLogicError(
            f"{product.quantity_on_hold} units are held by open orders; fulfil or cancel them before adding variants"
        )

    existing_options = await db.execute(
        select(VariantOption).where(VariantOption.product_id == product.id)
    )
    known = {(o.type, o.value): o for o in existing_options.scalars().all()}

    display_names: Dict[tuple, str] = {}
    plain_groups = []
    for group in options:
        values = []
        for sort_order, value in enumerate(group["values"]):
            key = (group["type"], value["value"])
            if value.get("display_name"):
                display_names[key] = value["display_name"]
            values.append(value["value"])
            if key in known:
                continue
            option = VariantOption(
                product_id=product.id,
                type=group["type"],
                value=value["value"],
                display_name=value.get("display_name") or value["value"],
                hex_color=value.get("hex_color"),
                image_url=value.get("image_url"),
                icon=value.get("icon"),
                sort_order=sort_order,
            )
            db.add(option)
            known[key] = option
        plain_groups.append({"type": group["type"], "values": values})

    created: List[ProductVariant] = []
    if generate:
        existing_variants = await db.execute(
            select(ProductVariant).where(ProductVariant.product_id == product.id)
        )
        existing = list(existing_variants.scalars().all())
        existing_keys = {v.combination_key for v in existing}
        next_sort = len(existing)

        for index, option_values in enumerate(generate_combinations(plain_groups)):
            key = combination_key(option_values)
            if key in existing_keys:
                continue
            variant = ProductVariant(
                product_id=product.id,
                combination_key=key,
                option_values=option_values,
                name=combination_name(option_values, display_names),
                sku=f"{default_sku}-{index + 1}" if default_sku else None,
                price=default_price,
                quantity=default_quantity,
                quantity_on_hold=0,
                is_available=True,
                sort_order=next_sort,
            )
            db.add(variant)
            existing_keys.add(key)
            created.append(variant)
            next_sort += 1

    product.has_variants = True
    product.variant_types = list(variant_types)
    # Inventory moves to the combinations
    if product.quantity:
        adjust_stock(db, product, None, 0, reason="Inventory moved to variant combinations")

    logger.info(f"Product {product.id}: {len(created)} variant combinations created")
    return created
