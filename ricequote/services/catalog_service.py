"""
Catalog service.

Reads products with their grades and performs the audited grade edits the
admin back-office exposes. Grade labels are unique per product, compared
case-insensitively.
"""
import logging
from typing import Callable, Dict, Any

from ricequote.exceptions import NotFoundError, ValidationError
from ricequote.models.audit import ActorContext
from ricequote.models.catalog import Grade, Product
from ricequote.services.audit_service import AuditedChange, AuditLogger
from ricequote.services.document_store import DocumentStore, Snapshot, Subscription, generate_push_key
from ricequote.services.grade_price_service import grades_path
from ricequote.utils.formatters import to_decimal

logger = logging.getLogger(__name__)

GRADE_ENTITY = 'GRADE'


def product_path(product_id: str) -> str:
    return f"products/{product_id}"


def _grade_from_payload(payload: Dict[str, Any]) -> Grade:
    label = str(payload.get('grade') or payload.get('label') or '').strip()
    if not label:
        raise ValidationError('Grade label is required', errors={'grade': 'required'})

    raw_price = payload.get('price_inr', payload.get('price_per_kg'))
    price = to_decimal(raw_price)
    if price is None or price < 0:
        raise ValidationError('Price per kg must be a number of at least 0',
                              errors={'price_inr': str(raw_price)})

    raw_moq = payload.get('moq') or 0
    moq = to_decimal(raw_moq)
    if moq is None or moq < 0:
        raise ValidationError('MOQ must be a number of at least 0', errors={'moq': str(raw_moq)})

    return Grade(
        label=label,
        price_per_kg=price,
        harvest=str(payload.get('harvest') or ''),
        origin=str(payload.get('origin') or ''),
        stock=str(payload.get('stock') or ''),
        moq=int(moq),
    )


class CatalogService:

    def __init__(self, store: DocumentStore, audit_logger: AuditLogger):
        self.store = store
        self.audit_logger = audit_logger

    def get_product(self, product_id: str) -> Product:
        value = self.store.get(product_path(product_id))
        if not isinstance(value, dict):
            raise NotFoundError(f"Product {product_id} not found")
        value = dict(value)
        # Grades are children of the product node, not a field of its value
        value.pop('grades', None)
        return Product.from_document(product_id, value, self.store.children(grades_path(product_id)))

    def _ensure_unique(self, product: Product, label: str, except_key: str = None) -> None:
        wanted = label.strip().lower()
        for grade in product.grades:
            if grade.key != except_key and grade.normalized_label == wanted:
                raise ValidationError(f"Grade '{label}' already exists for this product",
                                      errors={'grade': 'duplicate'})

    def add_grade(self, product_id: str, payload: Dict[str, Any], actor_context: ActorContext) -> AuditedChange:
        product = self.get_product(product_id)
        grade = _grade_from_payload(payload)
        self._ensure_unique(product, grade.label)

        grade.key = generate_push_key()
        path = f"{grades_path(product_id)}/{grade.key}"
        change = self.audit_logger.write_with_history(path, GRADE_ENTITY, grade.to_document(), actor_context)
        logger.info(f"[CATALOG] Added grade '{grade.label}' to {product_id}")
        return AuditedChange(grade, change.audit_recorded)

    def update_grade(self, product_id: str, key: str, payload: Dict[str, Any],
                     actor_context: ActorContext) -> AuditedChange:
        product = self.get_product(product_id)
        if not any(g.key == key for g in product.grades):
            raise NotFoundError(f"Grade {key} not found on product {product_id}")
        grade = _grade_from_payload(payload)
        self._ensure_unique(product, grade.label, except_key=key)

        grade.key = key
        path = f"{grades_path(product_id)}/{key}"
        change = self.audit_logger.write_with_history(path, GRADE_ENTITY, grade.to_document(), actor_context)
        logger.info(f"[CATALOG] Updated grade {key} on {product_id}")
        return AuditedChange(grade, change.audit_recorded)

    def delete_grade(self, product_id: str, key: str, actor_context: ActorContext) -> AuditedChange:
        path = f"{grades_path(product_id)}/{key}"
        if self.store.get(path) is None:
            raise NotFoundError(f"Grade {key} not found on product {product_id}")
        change = self.audit_logger.write_with_history(path, GRADE_ENTITY, None, actor_context)
        logger.info(f"[CATALOG] Deleted grade {key} from {product_id}")
        return change

    def subscribe_grades(self, product_id: str, callback: Callable[[list], None]) -> Subscription:
        """Live list of a product's grades; cancel with unsubscribe()."""
        def on_change(snapshot: Snapshot):
            callback([Grade.from_document(v, key=k) for k, v in snapshot.children.items() if isinstance(v, dict)])

        return self.store.subscribe(grades_path(product_id), on_change)
