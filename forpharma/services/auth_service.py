"""Authentication service for JWT bearer token verification"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from forpharma.config import Settings


class AuthService:
    """Verifies access tokens issued by the login service"""

    def __init__(self, settings: Settings):
        # Use jwt_secret if available, otherwise fall back to secret_key
        self.secret = settings.jwt_secret or settings.secret_key
        self.algorithm = settings.jwt_algorithm

    def decode_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Decode and validate a JWT token

        Args:
            token: JWT token string to decode

        Returns:
            Dictionary of token claims if valid, None otherwise
        """
        try:
            return jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError:
            return None

    def validate_token(self, token: str, token_type: str = "access") -> Optional[Dict[str, Any]]:
        """
        Validate a JWT token including signature, expiration, and type

        Tokens without a "type" claim are treated as access tokens.

        Args:
            token: JWT token string to validate
            token_type: Expected token type ('access' or 'refresh')

        Returns:
            Dictionary of token claims if valid, None otherwise
        """
        payload = self.decode_token(token)

        if not payload:
            return None

        if payload.get("type", "access") != token_type:
            return None

        # Check expiration (jose library already validates exp, but double-check)
        exp = payload.get("exp")
        if exp and datetime.fromtimestamp(exp, tz=timezone.utc) < datetime.now(timezone.utc):
            return None

        return payload
