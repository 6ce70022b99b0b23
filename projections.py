"""Pure views over a collection mirror: search, category buckets, order totals."""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from schemas import CATEGORIES, Order

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

PRODUCT_SEARCH_FIELDS = ("name", "description")
HERO_SEARCH_FIELDS = ("title", "description")
OTHER_BUCKET = "other"


def matches(record: Record, term: str, fields: Sequence[str]) -> bool:
    needle = term.strip().lower()
    if not needle:
        return True
    return any(needle in str(record.get(f) or "").lower() for f in fields)


def filter_records(records: Iterable[Record], term: Optional[str], fields: Sequence[str]) -> List[Record]:
    if not term or not term.strip():
        return list(records)
    return [r for r in records if matches(r, term, fields)]


def group_by_category(records: Iterable[Record], include_other: bool = False) -> Dict[str, List[Record]]:
    """Split products into the fixed men/women/kids buckets, keeping order.

    Products whose category is none of the three are left out unless
    ``include_other`` is set, in which case they go to an ``other`` bucket.
    """
    groups: Dict[str, List[Record]] = {c: [] for c in CATEGORIES}
    if include_other:
        groups[OTHER_BUCKET] = []
    for record in records:
        category = record.get("category")
        if category in CATEGORIES:
            groups[category].append(record)
        elif include_other:
            groups[OTHER_BUCKET].append(record)
        else:
            logger.debug("Product %s has unknown category %r; not grouped", record.get("id"), category)
    return groups


def display_price(record: Record) -> float:
    """Sale price when one is set, otherwise the base price."""
    sale = record.get("sale_price")
    return float(sale) if sale else float(record.get("price") or 0)


def project_order(record: Record) -> Record:
    """Order record with its parsed items and derived total."""
    projected = dict(record)
    try:
        order = Order.model_validate(record)
    except PydanticValidationError as e:
        logger.warning("Order %s could not be read: %s", record.get("id"), e.errors()[0].get("msg"))
        projected["total"] = None
        return projected
    projected["items"] = [i.model_dump() for i in order.items]
    projected["client"] = order.client.model_dump() if order.client else None
    projected["timestamp"] = order.timestamp
    projected["total"] = order.total
    return projected
