"""
Google OAuth2 JWT-bearer flow cho service account: ký assertion RS256 (google-auth),
đổi lấy access token tại token_uri (httpx).
"""
import json
import time
from typing import Any, Dict, Optional

import httpx
from google.auth import crypt, jwt

from spend_ledger.errors import AuthError, MalformedResponseError, ProviderError, UPSTREAM_BODY_LIMIT

PROVIDER_LABEL = "Google OAuth2"
GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"
SCOPE = (
    "https://www.googleapis.com/auth/cloud-billing.readonly "
    "https://www.googleapis.com/auth/cloud-platform.read-only"
)
ASSERTION_LIFETIME_SECONDS = 3600


def parse_service_account(service_account_json: str) -> Dict[str, Any]:
    """Service account JSON phải có client_email + private_key."""
    try:
        info = json.loads(service_account_json)
    except ValueError as e:
        raise AuthError("Vertex AI", "Service account JSON is not valid JSON") from e
    if not isinstance(info, dict) or not info.get("client_email") or not info.get("private_key"):
        raise AuthError("Vertex AI", "Service account JSON must include client_email and private_key")
    return info


def build_assertion(info: Dict[str, Any], token_endpoint: str, now: Optional[int] = None) -> str:
    """Signed JWT: iss=sub=client_email, aud=token_uri, 1h expiry, billing/platform read-only scope."""
    issued_at = int(now if now is not None else time.time())
    try:
        signer = crypt.RSASigner.from_service_account_info(info)
    except ValueError as e:
        raise AuthError("Vertex AI", "Service account private_key could not be loaded") from e
    payload = {
        "iss": info["client_email"],
        "sub": info["client_email"],
        "aud": info.get("token_uri") or token_endpoint,
        "iat": issued_at,
        "exp": issued_at + ASSERTION_LIFETIME_SECONDS,
        "scope": SCOPE,
    }
    assertion = jwt.encode(signer, payload, header={"typ": "JWT"})
    return assertion.decode("ascii") if isinstance(assertion, bytes) else assertion


async def get_google_access_token(
    client: httpx.AsyncClient,
    info: Dict[str, Any],
    token_endpoint: str,
) -> str:
    """Exchange the assertion for a bearer token. Non-2xx -> AuthError."""
    url = info.get("token_uri") or token_endpoint
    assertion = build_assertion(info, token_endpoint)
    try:
        resp = await client.post(url, data={"grant_type": GRANT_TYPE, "assertion": assertion})
    except httpx.RequestError as e:
        raise ProviderError(PROVIDER_LABEL, f"Google OAuth2 token request error: {e}") from e
    if resp.status_code < 200 or resp.status_code >= 300:
        raise AuthError(
            PROVIDER_LABEL,
            f"Google OAuth2 token exchange failed ({resp.status_code}): {resp.text[:UPSTREAM_BODY_LIMIT]}",
            status_code=resp.status_code,
        )
    try:
        data = resp.json()
    except ValueError as e:
        raise MalformedResponseError(PROVIDER_LABEL, "Google OAuth2 returned non-JSON response") from e
    token = data.get("access_token") if isinstance(data, dict) else None
    if not token:
        raise MalformedResponseError(PROVIDER_LABEL, "Google OAuth2 response has no access_token")
    return str(token)
