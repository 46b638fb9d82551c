"""
middleware/auth_middleware.py — Identity-provider token verification.

Sign-up, sign-in and token refresh happen at an external identity provider.
This API only accepts the provider's signed bearer tokens:

    Authorization: Bearer <jwt>

A token is accepted when it verifies against JWT_SECRET_KEY with
JWT_ALGORITHM, carries `sub` and `exp`, and names JWT_ISSUER / JWT_AUDIENCE
in `iss` / `aud` when those are configured. JWT_LEEWAY_SECONDS absorbs clock
skew between the provider and this service.

On success the route sees:
  g.user_id    — the provider uid (`sub`)
  g.user_email — the `email` claim, or None

Every rejection is a 401 AppError: TOKEN_MISSING when there is no header,
TOKEN_EXPIRED for a past `exp`, TOKEN_INVALID for anything else. Group
membership (403) is checked by the services, never here.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Callable, Mapping

import jwt
from flask import current_app, g, request

from splitsync.app.errors import AppError, ErrorCode


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str | None = None


def _unauthorized(code: str, message: str) -> AppError:
    return AppError(code, message, 401)


def verify_identity_token(raw_token: str, config: Mapping) -> Identity:
    """
    Decodes a provider token and returns the identity it asserts.

    `config` is anything with the JWT_* keys, usually current_app.config.
    Empty JWT_ISSUER / JWT_AUDIENCE skip the corresponding check.
    """
    audience = config.get("JWT_AUDIENCE") or None
    try:
        claims = jwt.decode(
            raw_token,
            config["JWT_SECRET_KEY"],
            algorithms=[config.get("JWT_ALGORITHM", "HS256")],
            issuer=config.get("JWT_ISSUER") or None,
            audience=audience,
            leeway=config.get("JWT_LEEWAY_SECONDS", 0),
            options={"require": ["sub", "exp"], "verify_aud": audience is not None},
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized(
            ErrorCode.TOKEN_EXPIRED,
            "The sign-in token has expired. Sign in again with the identity provider.",
        )
    except jwt.MissingRequiredClaimError as exc:
        raise _unauthorized(
            ErrorCode.TOKEN_INVALID,
            f"The sign-in token is missing the '{exc.claim}' claim.",
        )
    except (jwt.InvalidIssuerError, jwt.InvalidAudienceError):
        raise _unauthorized(
            ErrorCode.TOKEN_INVALID,
            "The sign-in token was not issued for this service.",
        )
    except jwt.InvalidTokenError:
        raise _unauthorized(
            ErrorCode.TOKEN_INVALID,
            "The sign-in token could not be verified.",
        )

    user_id = claims["sub"]
    if not isinstance(user_id, str) or not user_id.strip():
        raise _unauthorized(ErrorCode.TOKEN_INVALID, "The sign-in token does not name a user.")

    email = claims.get("email")
    return Identity(user_id=user_id, email=email if isinstance(email, str) and email else None)


def _bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    if not header:
        raise _unauthorized(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Send the identity provider's token as 'Bearer <token>'.",
        )
    parts = header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise _unauthorized(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
        )
    return parts[1]


def require_auth(view: Callable) -> Callable:
    """Route decorator: verifies the bearer token and sets g.user_id / g.user_email."""
    @functools.wraps(view)
    def decorated(*args, **kwargs):
        identity = verify_identity_token(_bearer_token(), current_app.config)
        g.user_id = identity.user_id
        g.user_email = identity.email
        return view(*args, **kwargs)

    return decorated
