# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Bearer token issuing and verification."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from src.config import settings
from src.services.authorization_gate import AuthErrorCode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenVerification:
    """Outcome of verifying a bearer token.

    Exactly one of ``payload`` or ``error_code`` is set.
    """

    payload: dict[str, Any] | None
    error: str | None = None
    error_code: AuthErrorCode | None = None


def create_access_token(
    user_id: int,
    username: str,
    role: str | None = None,
    expires_delta: timedelta | None = None,
    not_before: datetime | None = None,
) -> str:
    """Create a signed access token for a user.

    Args:
        user_id: Numeric user identifier.
        username: Login name carried for display and auditing.
        role: Legacy single role name, optional.
        expires_delta: Lifetime, defaults to the configured expiry.
        not_before: Earliest instant the token is accepted.
    """
    now = datetime.now(timezone.utc)
    claims: dict[str, Any] = {
        "userId": user_id,
        "username": username,
        "iat": now,
        "exp": now
        + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes)),
    }
    if role:
        claims["role"] = role
    if not_before is not None:
        claims["nbf"] = not_before
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> TokenVerification:
    """Verify a token and classify any failure."""
    try:
        payload = jwt.decode(
            token, settings.secret_key, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        return TokenVerification(
            None, "Session expired, please sign in again", AuthErrorCode.TOKEN_EXPIRED
        )
    except jwt.ImmatureSignatureError:
        return TokenVerification(
            None, "Token is not valid yet", AuthErrorCode.TOKEN_NOT_YET_VALID
        )
    except jwt.InvalidSignatureError:
        return TokenVerification(
            None, "Invalid authentication token", AuthErrorCode.INVALID_TOKEN
        )
    except jwt.DecodeError:
        return TokenVerification(
            None, "Malformed authentication token", AuthErrorCode.MALFORMED_TOKEN
        )
    except jwt.InvalidTokenError as e:
        logger.debug(f"Rejected token: {e}")
        return TokenVerification(
            None, "Invalid authentication token", AuthErrorCode.INVALID_TOKEN
        )
    return TokenVerification(payload)
