from typing import Any, Dict
import logging
import os

from dotenv import load_dotenv
from fastapi import Depends, HTTPException, Request, status
from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTClaimsError, JWTError
from sqlalchemy.orm import Session

from medsupply.database import get_db
from medsupply.models.users import User
from medsupply.utils.access import UserContext, permission_key

load_dotenv()

logger = logging.getLogger("auth")

# Tokens are issued by the identity provider; this service only verifies them.
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE")


def get_current_user(request: Request) -> Dict[str, Any]:
    """
    FastAPI dependency that validates the bearer JWT from the Authorization header
    and returns its claims.

    Usage:
        @router.get("/secure-data", dependencies=[Depends(get_current_user)])
        def secure_endpoint():
            return {"message": "This is secure data."}
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header is missing",
        )

    # The token is expected to be in the format "Bearer <token>"
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
        )

    token = parts[1]
    options = {"verify_aud": JWT_AUDIENCE is not None}
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET_KEY,
            algorithms=[JWT_ALGORITHM],
            audience=JWT_AUDIENCE,
            options=options,
        )
    except ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired"
        )
    except JWTClaimsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token claims: {e}"
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Token validation failed: {e}"
        )

    if not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has no subject",
        )
    return payload


def build_user_context(db_user: User) -> UserContext:
    return UserContext(
        user_id=db_user.id,
        username=db_user.username,
        role=db_user.role,
        permissions=frozenset(permission_key(p.resource, p.action) for p in db_user.permissions),
    )


def get_user_context(
    claims: Dict[str, Any] = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserContext:
    """Resolve the token subject to an active user and their direct permissions."""
    db_user = db.query(User).filter(User.username == claims["sub"]).first()
    if db_user is None or not db_user.is_active:
        logger.warning(f"Rejected token for unknown or inactive user '{claims['sub']}'")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return build_user_context(db_user)


def require_permission(resource: str, action: str):
    """Dependency factory: the caller must hold ``resource.action``."""
    def checker(ctx: UserContext = Depends(get_user_context)) -> UserContext:
        if not ctx.has_permission(resource, action):
            logger.warning(f"User {ctx.username} denied {resource}.{action}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {resource}.{action} required",
            )
        return ctx
    return checker
