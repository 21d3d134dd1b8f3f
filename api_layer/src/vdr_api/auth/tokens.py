"""Bearer token issuing and verification (HS256 JWT)."""

from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Optional

import jwt
from pydantic import BaseModel
from pydantic import ValidationError

from vdr_api.enums import TokenType
from vdr_api.enums import UserRole
from vdr_api.errors import AuthError
from vdr_api.errors import ForbiddenError


class Principal(BaseModel):
    """Identity carried by a bearer token."""

    email: str
    role: str = UserRole.USER.value
    name: Optional[str] = None
    type: TokenType = TokenType.USER
    org_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.type == TokenType.USER and self.role == UserRole.ADMIN.value


class TokenService:
    """Signs and verifies bearer tokens."""

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm

    def issue(self, principal: Principal, expires_in: timedelta) -> str:
        """Sign a token for ``principal`` that expires after ``expires_in``."""
        now = datetime.now(timezone.utc)
        claims = principal.model_dump(mode="json", exclude_none=True)
        claims.update(iat=now, exp=now + expires_in)
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> Principal:
        """
        Verify a token and return its principal.

        Raises:
            AuthError: The token has expired (401)
            ForbiddenError: The token is malformed, forged or lacks an email (403)
        """
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError as e:
            raise AuthError("Token expired") from e
        except jwt.PyJWTError as e:
            raise ForbiddenError("Invalid token") from e

        if not claims.get("email"):
            raise ForbiddenError("Invalid token")

        try:
            return Principal(
                email=claims["email"],
                role=claims.get("role", UserRole.USER.value),
                name=claims.get("name"),
                type=claims.get("type", TokenType.USER.value),
                org_id=claims.get("org_id"),
            )
        except ValidationError as e:
            raise ForbiddenError("Invalid token") from e
