"""
Grade price resolution.

Catalog grade labels drift ("1121 Steam A", "Steam A ", "steam a") so a
requested label is matched in tiers: exact, then catalog label containing the
request, then request containing the catalog label. All comparisons are
case-insensitive and keys are scanned in sorted order within a tier.
"""
import logging
from decimal import Decimal
from typing import Callable, List, Optional

from ricequote.exceptions import PriceUnavailable
from ricequote.models.catalog import Grade
from ricequote.services.document_store import DocumentStore, Snapshot, Subscription

logger = logging.getLogger(__name__)


def grades_path(product_id: str) -> str:
    return f"products/{product_id}/grades"


def _priced_grades(raw: dict) -> List[Grade]:
    grades = []
    for key in sorted(raw or {}):
        value = raw[key]
        if not isinstance(value, dict):
            continue
        grade = Grade.from_document(value, key=key)
        # A zero price must never price an order
        if grade.price_per_kg is None or grade.price_per_kg <= 0:
            continue
        grades.append(grade)
    return grades


def match_grade(grades: List[Grade], label: str) -> Optional[Grade]:
    """First grade matching `label` by exact, substring, then reverse substring."""
    wanted = (label or '').strip().lower()
    if not wanted:
        return None

    tiers = (
        lambda candidate: candidate == wanted,
        lambda candidate: wanted in candidate,
        lambda candidate: candidate in wanted,
    )
    for matches in tiers:
        for grade in grades:
            candidate = grade.normalized_label
            if candidate and matches(candidate):
                return grade
    return None


class GradePriceResolver:
    """Per-kg price (INR) for a product grade, read once from the store."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def resolve(self, product_id: str, grade_label: str) -> Optional[Decimal]:
        """Return the price per kg, or None when no grade matches."""
        grade = self.resolve_grade(product_id, grade_label)
        return grade.price_per_kg if grade else None

    def resolve_grade(self, product_id: str, grade_label: str) -> Optional[Grade]:
        if not product_id:
            return None
        grades = _priced_grades(self.store.children(grades_path(product_id)))
        if not grades:
            logger.info(f"[PRICE] No priced grades for product {product_id}")
            return None
        grade = match_grade(grades, grade_label)
        if grade is None:
            logger.info(f"[PRICE] No grade matching '{grade_label}' for product {product_id}")
        return grade

    def resolve_or_raise(self, product_id: str, grade_label: str) -> Decimal:
        price = self.resolve(product_id, grade_label)
        if price is None:
            raise PriceUnavailable(
                f"No price for grade '{grade_label}' of product {product_id}",
                payload={'product_id': product_id, 'grade': grade_label},
            )
        return price

    def subscribe(self, product_id: str, grade_label: str,
                  callback: Callable[[Optional[Decimal]], None]) -> Subscription:
        """
        Call `callback` with the resolved price now and whenever the product's
        grades change. Cancel with the returned handle's unsubscribe().
        """
        def on_change(snapshot: Snapshot):
            grade = match_grade(_priced_grades(snapshot.children), grade_label)
            callback(grade.price_per_kg if grade else None)

        return self.store.subscribe(grades_path(product_id), on_change)
