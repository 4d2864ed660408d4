# shopdesk/catalog/variant_groups.py
# ---------------------------------------------------------
# Groups flat product rows into base product + variants using the sku
# encoding (see sku_parser). The groups drive both the catalog table and
# the unit of bulk actions (select a group = select every member id).
# ---------------------------------------------------------

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from shopdesk.backend.models import Product
from shopdesk.catalog.sku_parser import parse_sku

logger = logging.getLogger("uvicorn.error")

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"
STATUS_PARTIAL = "partial"


@dataclass(frozen=True)
class ProductVariant:
    product: Product
    variant_name: str

    @property
    def id(self) -> str:
        return self.product.id


@dataclass
class ProductGroup:
    group_key: str
    variants: List[ProductVariant] = field(default_factory=list)
    main_product: Optional[Product] = None
    total_stock: int = 0
    total_sold: int = 0

    @property
    def representative(self) -> Product:
        """Product whose display fields (price, image, category) stand for the group."""
        if self.main_product is not None:
            return self.main_product
        return self.variants[0].product

    @property
    def base_name(self) -> str:
        if self.main_product is not None:
            return self.main_product.name
        first = self.variants[0]
        return strip_variant_suffix(first.product.name, first.variant_name)

    @property
    def price(self) -> float:
        return self.representative.price

    @property
    def image_url(self) -> Optional[str]:
        return self.representative.image_url

    @property
    def category(self) -> Optional[str]:
        return self.representative.category

    @property
    def status(self) -> str:
        return aggregate_status(self)

    @property
    def has_variants(self) -> bool:
        return bool(self.variants)

    def members(self) -> List[Product]:
        """Main product first, then variants in display order."""
        out = [self.main_product] if self.main_product is not None else []
        out.extend(v.product for v in self.variants)
        return out


def strip_variant_suffix(name: str, variant_name: str) -> str:
    """'Tee - Red' / 'Tee-Red' -> 'Tee' when the variant is 'Red'; otherwise unchanged."""
    if not variant_name:
        return name
    pattern = re.compile(r"\s*-\s*" + re.escape(variant_name) + r"\s*$")
    stripped = pattern.sub("", name or "")
    return stripped or name


def aggregate_status(group: ProductGroup) -> str:
    """Tri-state: active / partial / inactive, recomputed from the members every time."""
    if group.variants:
        statuses = [v.product.status for v in group.variants]
    elif group.main_product is not None:
        statuses = [group.main_product.status]
    else:
        return STATUS_INACTIVE
    inactive = sum(1 for s in statuses if s == STATUS_INACTIVE)
    if inactive == 0:
        return STATUS_ACTIVE
    if inactive == len(statuses):
        return STATUS_INACTIVE
    return STATUS_PARTIAL


def group_products(products: Iterable[Product]) -> List[ProductGroup]:
    """
    Group products by sku group key.

    - group order = first-seen order of any member
    - a second bare product for an existing key is kept as a variant with an
      empty variant name, so every input row lands in exactly one group
    - variants sorted by sold_qty desc (stable)
    """
    groups: Dict[str, ProductGroup] = {}

    for product in products:
        key = parse_sku(product.sku)
        group = groups.get(key.group_key)
        if group is None:
            group = ProductGroup(group_key=key.group_key)
            groups[key.group_key] = group

        group.total_stock += product.stock or 0
        group.total_sold += product.sold_qty or 0

        if key.is_variant:
            group.variants.append(ProductVariant(product, key.variant_name))
        elif group.main_product is None:
            group.main_product = product
        else:
            logger.warning(
                "[CATALOG] duplicate base sku %s (product %s); listing it as a variant",
                product.sku, product.id,
            )
            group.variants.append(ProductVariant(product, ""))

    for group in groups.values():
        group.variants.sort(key=lambda v: v.product.sold_qty or 0, reverse=True)

    return list(groups.values())


def flatten_groups(groups: Iterable[ProductGroup]) -> List[Product]:
    out: List[Product] = []
    for g in groups:
        out.extend(g.members())
    return out


def group_product_ids(group: ProductGroup) -> List[str]:
    return [p.id for p in group.members()]


def active_variant_count(group: ProductGroup) -> int:
    return sum(1 for v in group.variants if v.product.status == STATUS_ACTIVE)


def filter_products(products: Iterable[Product], query: str | None) -> List[Product]:
    """Case-insensitive match on name, sku or category."""
    q = (query or "").strip().lower()
    if not q:
        return list(products)
    out = []
    for p in products:
        if q in (p.name or "").lower() or q in (p.sku or "").lower() or q in (p.category or "").lower():
            out.append(p)
    return out
