# Overview: Service-layer operations for the product catalog; encapsulates business logic and database work.

"""
Catalog gateway.

WHY: Demand notices, quotations and orders read product identity, price and stock
through one module, and stock mutations go through adjust_stock so the
quantity_in_stock >= 0 rule holds everywhere.
"""

from __future__ import annotations

import secrets
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Product
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_product,
    to_int,
    validate_payload,
)
from .activity_service import append_activity_event
from .concurrency import lock_for_update, run_in_transaction


DEMAND_NOTICE_CATEGORY = "Demand Notice Item"
EXTERNAL_QUOTATION_CATEGORY = "External Quotation Item"

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku",
        "name",
        "category",
        "price",
        "quantity_in_stock",
        "low_stock_threshold",
        "low_stock_price",
        "expiry_date",
        "is_demand_notice_product",
    },
    required_on_create={"sku", "name", "price"},
)


def get_product_by_id(product_id: int) -> Product | None:
    return db.session.get(Product, product_id)


def get_product_by_sku(sku: str) -> Product | None:
    if not sku:
        return None
    return db.session.query(Product).filter(func.lower(Product.sku) == sku.strip().lower()).first()


def require_product(product_id) -> Product:
    product = get_product_by_id(product_id) if product_id is not None else None
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def list_products(*, search: str | None = None) -> list[Product]:
    query = db.session.query(Product)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Product.name.ilike(like), Product.sku.ilike(like)))
    return query.order_by(Product.name).all()


def effective_price(product: Product) -> Decimal:
    return product.effective_price


def generate_sku(prefix: str, name: str | None = None) -> str:
    """Unique placeholder SKU such as NEW-LAP3F9A1C."""
    stem = "".join(ch for ch in (name or "").upper() if ch.isalnum())[:3]
    while True:
        candidate = f"{prefix}-{stem}{secrets.token_hex(3).upper()}"
        if get_product_by_sku(candidate) is None:
            return candidate


def _ensure_sku_free(sku: str, *, exclude_id: int | None = None) -> None:
    existing = get_product_by_sku(sku)
    if existing and existing.id != exclude_id:
        raise ConflictError(f"SKU '{sku}' already exists")


def _current_rules_view(product: Product) -> dict:
    return {
        "quantity_in_stock": product.quantity_in_stock,
        "low_stock_threshold": product.low_stock_threshold,
        "low_stock_price": product.low_stock_price,
    }


def create_product(payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    def _op():
        _ensure_sku_free(patch["sku"])
        product = Product(**patch)
        db.session.add(product)
        db.session.flush()
        return product

    return run_in_transaction(_op)


def update_product(product_id: int, payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        enforce_rules_product(patch, _current_rules_view(product))
        if "sku" in patch:
            _ensure_sku_free(patch["sku"], exclude_id=product.id)
        for key, value in patch.items():
            setattr(product, key, value)
        db.session.flush()
        return product

    return run_in_transaction(_op)


def create_placeholder_product(
    *,
    name: str,
    sku: str | None,
    price: Decimal,
    category: str,
    sku_prefix: str,
) -> Product:
    """
    Zero-stock catalog entry for an item that has to be sourced.

    Runs inside the caller's transaction.
    """
    sku = (sku or "").strip() or generate_sku(sku_prefix, name)
    _ensure_sku_free(sku)
    product = Product(
        sku=sku,
        name=name,
        category=category,
        price=price,
        quantity_in_stock=0,
        is_demand_notice_product=True,
    )
    db.session.add(product)
    db.session.flush()
    return product


def adjust_stock(product: Product, delta: int) -> Product:
    """Apply a stock delta in the caller's transaction; stock never goes negative."""
    new_quantity = product.quantity_in_stock + delta
    if new_quantity < 0:
        raise ConflictError(
            f"Insufficient stock for {product.name} (SKU {product.sku}): "
            f"available {product.quantity_in_stock}, requested {-delta}"
        )
    product.quantity_in_stock = new_quantity
    return product


def receive_stock(product_id: int, quantity, *, user_id: int | None = None) -> Product:
    """Book incoming stock and refresh the open demand notices for the product."""
    from . import demand_notice_service

    qty = to_int(quantity, "quantity", minimum=1)

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        adjust_stock(product, qty)
        append_activity_event(
            event_type="catalog.stock_received",
            entity_type="product",
            entity_id=product.id,
            actor_user_id=user_id,
            note=f"+{qty}",
        )
        demand_notice_service.apply_stock_status(product)
        return product

    return run_in_transaction(_op)


def validate_stock_available(product: Product, quantity: int) -> None:
    if quantity <= 0:
        raise ValidationError("quantity must be > 0")
    if product.quantity_in_stock < quantity:
        raise ConflictError(
            f"Insufficient stock for {product.name} (SKU {product.sku}): "
            f"available {product.quantity_in_stock}, requested {quantity}"
        )
