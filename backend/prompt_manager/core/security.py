"""Clerk JWT verification.

Users sign in through Clerk; this backend never stores accounts of its own.
The Clerk ``sub`` claim is the internal user identifier that keys customer
and prompt rows, and the value the frontend passes to Stripe Checkout as
``client_reference_id``.

Tokens are verified against the JWKS served at ``CLERK_JWKS_URL``.  The
``aud`` and ``iss`` claims are only checked when ``CLERK_JWT_AUDIENCE`` /
``CLERK_JWT_ISSUER`` are configured.
"""

from __future__ import annotations

from typing import Optional, Dict

import requests
from fastapi import HTTPException
from jose import jwt

from prompt_manager.core.config import settings

# JWKS cache.  Refreshed once when a token names an unknown key id.
_clerk_jwks: Optional[Dict] = None


def get_clerk_jwks() -> Dict:
    """Fetch and cache the JWKS used to verify Clerk tokens."""
    global _clerk_jwks
    if _clerk_jwks is not None:
        return _clerk_jwks
    if not settings.CLERK_JWKS_URL:
        raise HTTPException(status_code=500, detail="CLERK_JWKS_URL is not configured")
    try:
        resp = requests.get(settings.CLERK_JWKS_URL, timeout=5)
        resp.raise_for_status()
        data = resp.json()
    except Exception as exc:
        raise HTTPException(status_code=500, detail="Failed to fetch JWKS") from exc
    if not isinstance(data, dict) or "keys" not in data:
        raise HTTPException(status_code=500, detail="Invalid JWKS payload from Clerk")
    _clerk_jwks = data
    return data


def _find_key(jwks: Dict, kid: str) -> Optional[Dict]:
    return next((k for k in jwks.get("keys", []) if k.get("kid") == kid), None)


def decode_clerk_jwt(token: str) -> Dict:
    """Decode and verify a Clerk JWT.

    Raises:
        HTTPException: 401 if the token is malformed, signed by an unknown key
        or fails claim validation.
    """
    global _clerk_jwks
    try:
        header = jwt.get_unverified_header(token)
    except Exception as exc:
        raise HTTPException(status_code=401, detail="Invalid token header") from exc
    kid = header.get("kid")
    if not kid:
        raise HTTPException(status_code=401, detail="Invalid Clerk token: missing kid header")
    key = _find_key(get_clerk_jwks(), kid)
    if not key:
        # Key rotation: drop the cache and retry once
        _clerk_jwks = None
        key = _find_key(get_clerk_jwks(), kid)
        if not key:
            raise HTTPException(status_code=401, detail="Unknown signing key (kid) for Clerk token")

    decode_kwargs: Dict = {"algorithms": ["RS256"], "options": {}}
    if settings.CLERK_JWT_AUDIENCE:
        decode_kwargs["audience"] = settings.CLERK_JWT_AUDIENCE
    else:
        decode_kwargs["options"]["verify_aud"] = False
    if settings.CLERK_JWT_ISSUER:
        decode_kwargs["issuer"] = settings.CLERK_JWT_ISSUER
    try:
        return jwt.decode(token, key, **decode_kwargs)
    except Exception as exc:
        raise HTTPException(status_code=401, detail="Invalid Clerk token") from exc
