"""Linen classification — decides which delivered items come back as dirty linen.

Only bed and bath linen is collected on the next visit. Courtesy kits and
cleaning products are consumed at the property and never owed back.

Items reach this module in many shapes (aggregate entities, projection rows
decoded from JSON, raw API payloads), so every lookup tolerates both
attribute and mapping access and falls back to name matching when category
or type are missing.
"""

from collections.abc import Mapping

PICKUP_CATEGORIES = frozenset(
    {
        "biancheria_letto",
        "biancheria_bagno",
        "bed_linen",
        "bath_linen",
    }
)

EXCLUDED_CATEGORIES = frozenset(
    {
        "kit_cortesia",
        "prodotti_pulizia",
        "cleaning_products",
        "courtesy_kit",
        "cleaning_product",
    }
)

EXCLUDED_TYPES = frozenset({"cleaning_product", "kit_cortesia"})

LINEN_KEYWORDS = (
    "lenzuol",
    "feder",
    "telo",
    "asciugaman",
    "scendi",
    "copri",
    "tappet",
    "accappato",
    "coperta",
    "cuscin",
    "sheet",
    "towel",
    "pillowcase",
    "bath mat",
    "rug",
)

EXCLUDED_KEYWORDS = (
    "sapone",
    "shampoo",
    "bagnoschiuma",
    "crema",
    "detersivo",
    "detergente",
    "spray",
    "kit",
    "cortesia",
    "amenities",
    "soap",
    "shower gel",
    "bath gel",
    "cream",
    "detergent",
)


def _read(item, *names: str):
    for name in names:
        if isinstance(item, Mapping):
            value = item.get(name)
        else:
            value = getattr(item, name, None)
        if value:
            return value
    return None


def _normalized(value) -> str:
    return str(value).strip().lower() if value else ""


def is_pickup_eligible(item) -> bool:
    """Return True when the item is linen that must be picked up later.

    Exclusions always win over eligibility, so a "kit_cortesia" item is never
    collected even if its name mentions a towel.
    """
    if item is None:
        return False

    category_id = _normalized(_read(item, "category_id", "categoryId")).replace("-", "_")
    item_type = _normalized(_read(item, "item_type", "type")).replace("-", "_")
    name = _normalized(_read(item, "name"))

    if category_id in EXCLUDED_CATEGORIES or item_type in EXCLUDED_TYPES:
        return False
    if any(keyword in name for keyword in EXCLUDED_KEYWORDS):
        return False

    if category_id in PICKUP_CATEGORIES:
        return True
    return any(keyword in name for keyword in LINEN_KEYWORDS)
