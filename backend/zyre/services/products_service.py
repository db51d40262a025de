# Overview: Service-layer operations for products; listing, patch-based writes, soft delete and restore.

from __future__ import annotations

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import Product

PRODUCT_MUTABLE_FIELDS = {"sku", "name", "generic_name", "brand", "description", "safety_stock", "is_active"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _get_or_404(product_id: int) -> Product:
    p = db.session.get(Product, product_id)
    if p is None:
        raise NotFoundError("Product not found")
    return p


def _ensure_sku_free(sku: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("SKU already exists.")


def list_products(
    *,
    search: str | None = None,
    include_inactive: bool = False,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    """
    Product listing with name/sku/generic/brand search.

    Soft-deleted products are hidden unless include_inactive is set.
    per_page is capped at 100.
    """
    per_page = min(max(per_page, 1), 100)
    page = max(page, 1)

    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Product.name.like(pattern),
            Product.sku.like(pattern),
            Product.generic_name.like(pattern),
            Product.brand.like(pattern),
        ))
    query = query.order_by(Product.name.asc(), Product.id.asc())

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    products = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(product_id: int) -> Product:
    return _get_or_404(product_id)


def create_product(*, patch: dict) -> Product:
    """Create product from a validated patch dict. SKU is globally unique."""
    _ensure_sku_free(patch["sku"])

    p = Product()
    apply_product_patch(p, patch)
    db.session.add(p)
    db.session.commit()
    return p


def update_product(*, product_id: int, patch: dict) -> Product:
    p = _get_or_404(product_id)

    if "sku" in patch and patch["sku"] != p.sku:
        _ensure_sku_free(patch["sku"], exclude_id=p.id)

    apply_product_patch(p, patch)
    db.session.commit()
    return p


def delete_product(*, product_id: int) -> Product:
    """Soft-delete only: IDs stay valid for inventory items and movements."""
    p = _get_or_404(product_id)
    if p.is_active:
        p.is_active = False
        db.session.commit()
    return p


def restore_product(*, product_id: int) -> Product:
    p = _get_or_404(product_id)
    if not p.is_active:
        p.is_active = True
        db.session.commit()
    return p
