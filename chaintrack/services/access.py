# chaintrack/services/access.py
from chaintrack.errors import AuthorizationError, NotFoundError
from chaintrack.models.users import Role, User


def role_of(user) -> str:
    return (getattr(user, "role", None) or "").lower()


def require_role(user, *allowed: Role) -> None:
    """Raise AuthorizationError unless the caller holds one of the allowed roles."""
    if user is None:
        raise AuthorizationError("Authentication required")
    allowed_values = {r.value for r in allowed}
    if role_of(user) not in allowed_values:
        raise AuthorizationError(
            "Operation not permitted for this role",
            role=role_of(user),
            allowed=sorted(allowed_values),
        )


def require_owner(user, owner_id, entity: str, entity_id) -> None:
    """Raise AuthorizationError unless the caller is the given owner of the entity."""
    if user is None or user.id != owner_id:
        raise AuthorizationError(
            f"{entity.capitalize()} {entity_id} does not belong to the caller",
            entity=entity,
            id=entity_id,
        )


def require_party(db, user_id, role: Role):
    """
    Resolve the counterparty of a transfer or order. A missing user and a user
    holding another role look the same: neither can receive goods in that role.
    """
    user = db.query(User).filter(User.id == user_id).first()
    if user is None or role_of(user) != role.value:
        raise NotFoundError(f"{role.value.capitalize()} {user_id} not found", entity=role.value, id=user_id)
    return user
