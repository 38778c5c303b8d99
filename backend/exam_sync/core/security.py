"""
JWT token generation and verification for sync operators.
"""
import secrets
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional
from jose import jwt, JWTError, ExpiredSignatureError
from fastapi import HTTPException, status


class JWTManager:
    """Issues and verifies bearer tokens for the sync API."""

    def __init__(self, secret_key: str = None, algorithm: str = "HS256", expiration_minutes: int = 60):
        self.secret_key = secret_key or secrets.token_urlsafe(32)
        self.algorithm = algorithm
        self.default_expiration_minutes = expiration_minutes

    def create_access_token(
        self,
        subject: str,
        role: str,
        test_center_id: Optional[str] = None,
        expiration_minutes: int = None
    ) -> str:
        """Create an access token carrying the principal's role and owning center."""
        expiration_minutes = expiration_minutes or self.default_expiration_minutes
        now = datetime.now(timezone.utc)

        payload = {
            "sub": str(subject),
            "role": role,
            "test_center_id": test_center_id,
            "iat": now,
            "exp": now + timedelta(minutes=expiration_minutes),
            "type": "access",
            "jti": secrets.token_urlsafe(16)
        }

        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_access_token(self, token: str) -> Dict[str, Any]:
        """Verify and decode an access token."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired"
            )
        except JWTError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token"
            )

        if payload.get("type") != "access":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token type"
            )

        return payload


def build_jwt_manager(settings) -> JWTManager:
    return JWTManager(
        secret_key=settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
        expiration_minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES
    )
