"""
Identity module for user sign-up and login.

Stands in for the external identity provider: registers email/password
credentials, issues opaque session tokens and resolves a token back to the
stable user id. Passwords are stored as salted SHA-256 hashes.
"""

import logging
import secrets
import hashlib
from datetime import datetime, timezone, timedelta
from typing import Optional, Dict, Any, Tuple

from fastapi import Request
from pydantic import BaseModel, EmailStr, Field

from clinic.schemas import UserRole
from core.domain import AuthenticationError

logger = logging.getLogger(__name__)


# =============================================================================
# MODELS
# =============================================================================

class LoginRequest(BaseModel):
    """Login request model."""
    email: EmailStr
    password: str = Field(min_length=1)


class RegisterRequest(BaseModel):
    """Sign-up request: credentials plus the user profile."""
    email: EmailStr
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)
    role: UserRole
    avatar: Optional[str] = None
    phone: Optional[str] = None


class LoginResponse(BaseModel):
    """Login response model."""
    success: bool
    message: str
    token: Optional[str] = None
    user: Optional[Dict[str, Any]] = None


# =============================================================================
# PASSWORD UTILITIES
# =============================================================================

def hash_password(password: str, salt: Optional[str] = None) -> str:
    """
    Hash a password using SHA-256 with a random per-credential salt.

    Returns:
        "<salt>$<hexdigest>"
    """
    salt = salt or secrets.token_hex(16)
    digest = hashlib.sha256((salt + password).encode()).hexdigest()
    return f"{salt}${digest}"


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash."""
    salt, _, _ = password_hash.partition("$")
    return secrets.compare_digest(hash_password(password, salt), password_hash)


def generate_session_token() -> str:
    """Generate a secure session token."""
    return secrets.token_urlsafe(32)


def extract_token(request: Request) -> Optional[str]:
    """Read a session token from the Authorization header, X-Auth-Token or cookie."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[len("Bearer "):]
    return request.headers.get("X-Auth-Token") or request.cookies.get("auth_token")


# =============================================================================
# IDENTITY PROVIDER (In-Memory)
# =============================================================================

class IdentityProvider:
    """
    Credential and session registry.

    Credentials are keyed by email; sessions by token. Both live for the
    lifetime of the process.
    """

    def __init__(self, session_ttl_hours: int = 24):
        self.session_ttl = timedelta(hours=session_ttl_hours)
        self._credentials: Dict[str, Tuple[str, str]] = {}
        self._sessions: Dict[str, Dict[str, Any]] = {}

    def has_credentials(self, email: str) -> bool:
        return email.lower() in self._credentials

    def register_credentials(self, user_id: str, email: str, password: str):
        """Store a password hash for ``email`` bound to ``user_id``."""
        self._credentials[email.lower()] = (user_id, hash_password(password))
        logger.info(f"Registered credentials for user {user_id}")

    def authenticate(self, email: str, password: str) -> str:
        """
        Check credentials.

        Returns:
            The user id bound to the email

        Raises:
            AuthenticationError: If the email is unknown or the password is wrong
        """
        entry = self._credentials.get(email.lower())
        if entry is None or not verify_password(password, entry[1]):
            logger.info(f"Failed login attempt for {email}")
            raise AuthenticationError("Invalid email or password")
        return entry[0]

    def create_session(self, user_data: Dict[str, Any]) -> str:
        """Create a new session for a user and return the token."""
        token = generate_session_token()
        now = datetime.now(timezone.utc)

        self._sessions[token] = {
            "user_id": user_data["id"],
            "email": user_data["email"],
            "name": user_data.get("name", ""),
            "role": user_data.get("role", "patient"),
            "created_at": now.isoformat(),
            "expires_at": (now + self.session_ttl).isoformat(),
        }

        logger.info(f"Created session for user {user_data['id']}")
        return token

    def get_session(self, token: Optional[str]) -> Optional[Dict[str, Any]]:
        """Get session data for a token, or None if invalid/expired."""
        if not token or token not in self._sessions:
            return None

        session = self._sessions[token]

        expires_at = datetime.fromisoformat(session["expires_at"])
        if datetime.now(timezone.utc) > expires_at:
            del self._sessions[token]
            return None

        return session

    def delete_session(self, token: Optional[str]) -> bool:
        """Delete a session (logout)."""
        if token and token in self._sessions:
            del self._sessions[token]
            return True
        return False

    def verify_token(self, token: Optional[str]) -> str:
        """
        Resolve a token to its user id.

        Raises:
            AuthenticationError: If the token is missing, unknown or expired
        """
        session = self.get_session(token)
        if session is None:
            raise AuthenticationError("Invalid or expired session")
        return session["user_id"]
