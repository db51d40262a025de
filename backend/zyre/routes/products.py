# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product master-data routes.

Reads need a session; writes need an ADMIN (or SUPERADMIN) and the CSRF
header. Deletes are soft: the product is deactivated and can be restored.
"""

from flask import Blueprint, request

from ..decorators import require_auth, require_csrf, require_roles
from ..models import Product
from ..responses import success
from ..services import products_service
from ..validation import ModelValidationPolicy, enforce_rules_product, validate_payload

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "name", "generic_name", "brand", "description", "safety_stock", "is_active"},
    required_on_create={"sku", "name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/v1/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    Query params:
    - search: substring of name, sku, generic name or brand
    - include_inactive: "true" to include soft-deleted products
    - page / per_page: pagination (per_page max 100)
    """
    result = products_service.list_products(
        search=request.args.get("search"),
        include_inactive=request.args.get("include_inactive", "").lower() in ("1", "true", "yes"),
        page=request.args.get("page", 1, type=int),
        per_page=request.args.get("per_page", 20, type=int),
    )
    return success(result, "GET", "Products fetched")


@products_bp.post("")
@require_auth
@require_csrf
@require_roles("SUPERADMIN", "ADMIN")
def create_product():
    patch = validate_payload(
        model=Product,
        payload=request.get_json(silent=True),
        policy=PRODUCT_POLICY,
        partial=False,
    )
    enforce_rules_product(patch)
    product = products_service.create_product(patch=patch)
    return success(product.to_dict(), "POST", "Product created", 201)


@products_bp.get("/<int:product_id>")
@require_auth
def get_product(product_id: int):
    product = products_service.get_product(product_id)
    return success(product.to_dict(), "GET", "Product fetched")


@products_bp.put("/<int:product_id>")
@require_auth
@require_csrf
@require_roles("SUPERADMIN", "ADMIN")
def update_product(product_id: int):
    patch = validate_payload(
        model=Product,
        payload=request.get_json(silent=True),
        policy=PRODUCT_POLICY,
        partial=True,
    )
    enforce_rules_product(patch)
    product = products_service.update_product(product_id=product_id, patch=patch)
    return success(product.to_dict(), "PUT", "Product updated")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_csrf
@require_roles("SUPERADMIN", "ADMIN")
def delete_product(product_id: int):
    product = products_service.delete_product(product_id=product_id)
    return success(product.to_dict(), "DELETE", "Product deactivated")


@products_bp.post("/<int:product_id>/restore")
@require_auth
@require_csrf
@require_roles("SUPERADMIN", "ADMIN")
def restore_product(product_id: int):
    product = products_service.restore_product(product_id=product_id)
    return success(product.to_dict(), "POST", "Product restored")
