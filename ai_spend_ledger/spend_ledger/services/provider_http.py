"""Shared httpx GET for provider billing APIs: status mapping, JSON decode, shape check."""
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import httpx

from spend_ledger.errors import MalformedResponseError, ProviderError, upstream_error_for_status

QueryParams = Union[Mapping[str, str], List[Tuple[str, str]]]


def build_client(timeout: float, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Client for one sync; transport is injectable for tests (httpx.MockTransport)."""
    return httpx.AsyncClient(timeout=timeout, transport=transport)


async def get_json(
    client: httpx.AsyncClient,
    provider: str,
    url: str,
    *,
    params: Optional[QueryParams] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """
    GET url và trả JSON object.
    Non-2xx -> AuthError (401/403) / UpstreamError; body không phải JSON object -> MalformedResponseError.
    """
    try:
        resp = await client.get(url, params=params, headers=headers)
    except httpx.RequestError as e:
        raise ProviderError(provider, f"{provider} request error: {e}") from e
    if resp.status_code < 200 or resp.status_code >= 300:
        raise upstream_error_for_status(provider, resp.status_code, resp.text)
    try:
        data = resp.json()
    except ValueError as e:
        raise MalformedResponseError(provider, f"{provider} returned non-JSON response") from e
    if not isinstance(data, dict):
        raise MalformedResponseError(provider, f"{provider} returned unexpected JSON shape")
    return data


def as_list(value: Any) -> List[Dict[str, Any]]:
    """Bucket/result arrays: missing -> []; non-dict entries dropped."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}
