from typing import Any, Dict

from fastapi import HTTPException, Request, status
from jose import jwt
from jose.exceptions import JWTError

# Tokens are issued by the authentication service; this service only verifies
# them and extracts the actor recorded in audit and ledger rows.
import os
from dotenv import load_dotenv

load_dotenv()

JWT_SECRET = os.getenv("LEDGER_JWT_SECRET", "")
JWT_ALGORITHM = os.getenv("LEDGER_JWT_ALGORITHM", "HS256")
JWT_AUDIENCE = os.getenv("LEDGER_JWT_AUDIENCE")


def get_current_user(request: Request) -> Dict[str, Any]:
    """
    FastAPI dependency to validate the bearer JWT from the Authorization header.

    Usage:
        @router.post("/purchases/", ...)
        def create_purchase(..., user: dict = Depends(get_current_user)):
            ...
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

    if not JWT_SECRET:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Token verification is not configured",
        )

    try:
        return jwt.decode(
            parts[1],
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            audience=JWT_AUDIENCE,
            options={"verify_aud": JWT_AUDIENCE is not None},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired"
        )
    except jwt.JWTClaimsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token claims: {e}"
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Token validation failed: {e}"
        )


def get_user_identifier(user: Dict[str, Any]) -> str:
    """Pick the most readable stable identifier from token claims."""
    if not user:
        return "system"
    return user.get("email") or user.get("username") or user.get("sub") or "unknown"
