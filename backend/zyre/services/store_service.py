from __future__ import annotations

from zyre.extensions import db
from zyre.models import Store
from zyre.services.concurrency import lock_for_update, run_with_retry


class StoreError(ValueError):
    """Raised when store operations fail."""


def create_store(name: str | None, code: str | None = None) -> Store:
    def _op():
        if not name:
            raise StoreError("Store name is required")

        if db.session.query(Store).filter_by(name=name).first():
            raise StoreError("Store name already exists")
        if code and db.session.query(Store).filter_by(code=code).first():
            raise StoreError("Store code already exists")

        store = Store(name=name, code=code)
        db.session.add(store)
        db.session.commit()
        return store

    return run_with_retry(_op)


def update_store(
    store_id: int,
    *,
    name: str | None = None,
    code: str | None = None,
    is_active: bool | None = None,
) -> Store:
    def _op():
        store = lock_for_update(db.session.query(Store).filter_by(id=store_id)).first()
        if not store:
            raise StoreError("Store not found")

        if name is not None and name != store.name:
            if db.session.query(Store).filter(Store.name == name, Store.id != store_id).first():
                raise StoreError("Store name already exists")
            store.name = name
        if code is not None:
            store.code = code
        if is_active is not None:
            store.is_active = bool(is_active)

        db.session.commit()
        return store

    return run_with_retry(_op)


def get_store(store_id: int) -> Store | None:
    return db.session.query(Store).filter_by(id=store_id).first()


def list_stores(*, include_inactive: bool = False) -> list[Store]:
    query = db.session.query(Store)
    if not include_inactive:
        query = query.filter(Store.is_active.is_(True))
    return query.order_by(Store.name.asc()).all()


def get_or_create_default_store(name: str = "Main Store") -> Store:
    store = db.session.query(Store).order_by(Store.id.asc()).first()
    if store:
        return store
    return create_store(name, code="MAIN")
