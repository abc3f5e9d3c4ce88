# chaintrack/utils/tokenJWT.py
from jose import jwt, JWTError
from datetime import datetime, timedelta, timezone
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from chaintrack.config import settings
from chaintrack.database import get_db
from chaintrack.models.users import User
from chaintrack.services.access import require_role

bearer_scheme = HTTPBearer()


# Sign a token for a user: subject is the user id, role travels as a claim
def create_access_token(user: User, expires_delta: timedelta = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {"sub": str(user.id), "email": user.email, "role": user.role, "exp": expire}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


# Resolve the bearer token to a user. A token whose role claim no longer
# matches the stored role is refused, so role changes take effect at once.
def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        raise _unauthorized()

    user = db.query(User).filter(User.id == user_id).first()
    if user is None or user.role != payload.get("role"):
        raise _unauthorized()
    return user


# Dependency factory for role-based access; refusals surface as AuthorizationError
def role_required(*allowed_roles):
    def _checker(current_user: User = Depends(get_current_user)):
        require_role(current_user, *allowed_roles)
        return current_user
    return _checker
