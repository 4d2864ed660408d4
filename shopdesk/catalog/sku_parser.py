# shopdesk/catalog/sku_parser.py
# --------------------------------------------------------------------------------------
# SKU parser for the one-level variant encoding used by the catalog:
#   "<group_key>"                 -> base product
#   "<group_key>_<variant_name>"  -> variant of that base product
# Only the first separator is structural. "TEE_RED_XL" is group "TEE" with the
# variant "RED_XL"; the encoding is not a path.
# --------------------------------------------------------------------------------------

from __future__ import annotations

from typing import NamedTuple, Optional

SEPARATOR = "_"


class SkuKey(NamedTuple):
    group_key: str
    variant_name: Optional[str]

    @property
    def is_variant(self) -> bool:
        return self.variant_name is not None


def parse_sku(sku: str) -> SkuKey:
    """
    Split a sku on its first separator.

    Examples:
        parse_sku("TEE")         -> SkuKey("TEE", None)
        parse_sku("TEE_RED")     -> SkuKey("TEE", "RED")
        parse_sku("TEE_RED_XL")  -> SkuKey("TEE", "RED_XL")
        parse_sku("TEE_")        -> SkuKey("TEE", None)   # empty variant = base product
    """
    sku = sku or ""
    group_key, sep, rest = sku.partition(SEPARATOR)
    if not sep or not rest:
        return SkuKey(group_key, None)
    return SkuKey(group_key, rest)

