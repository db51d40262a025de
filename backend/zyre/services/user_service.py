# Overview: Service-layer operations for users; listing and store/position assignment.

from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Position, Store, User
from .concurrency import lock_for_update, run_with_retry


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.fullname.asc(), User.id.asc()).all()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def current_user_summary(user: User) -> dict:
    """Compact profile for the signed-in user (store names only)."""
    return {
        "id": user.id,
        "name": user.fullname,
        "email": user.email,
        "role": user.role_name.lower() if user.role_name else None,
        "store": [store.name for store in user.stores],
        "position": user.position.name.lower().replace("_", "-") if user.position else None,
    }


def assign_stores_and_position(user_id: int, *, store_ids, position_id=None) -> User:
    """
    Replace the user's store set and position.

    store_ids replaces the whole set; a falsy position_id clears the position.
    """
    if not isinstance(store_ids, list):
        raise ValidationError("storeIds must be a list of store ids")
    if any(isinstance(s, bool) or not isinstance(s, int) for s in store_ids):
        raise ValidationError("storeIds must be a list of store ids")

    def _op():
        user = lock_for_update(db.session.query(User).filter_by(id=user_id)).first()
        if not user:
            raise NotFoundError("User not found")

        wanted = set(store_ids)
        stores = db.session.query(Store).filter(Store.id.in_(wanted)).all() if wanted else []
        unknown = wanted - {store.id for store in stores}
        if unknown:
            raise ValidationError(f"Unknown store ids: {', '.join(str(s) for s in sorted(unknown))}")

        position = None
        if position_id:
            position = db.session.get(Position, position_id)
            if position is None:
                raise ValidationError("Invalid position ID.")

        user.stores = sorted(stores, key=lambda s: s.id)
        user.position = position
        db.session.commit()
        return user

    return run_with_retry(_op)
