"""
aceops/services/whitebooks_client.py

Purpose: Whitebooks GST e-invoice API client

- Session authentication (auth token, SEK)
- GSTN taxpayer lookup
- IRN and e-way bill generation
- Network failures surface as ExternalServiceError carrying the upstream status_desc
"""

from typing import Any, Dict, Optional

import httpx

from aceops.core.config import settings
from aceops.core.exceptions import ExternalServiceError
from aceops.core.logging import get_logger
from utils.gst_utils import flatten_status_desc

logger = get_logger(__name__)

AUTHENTICATE_PATH = "/einvoice/authenticate"
GSTN_DETAILS_PATH = "/einvoice/type/GSTNDETAILS/version/V1_03"
GENERATE_IRN_PATH = "/einvoice/type/GENERATE/version/V1_03"
GENERATE_EWAYBILL_PATH = "/einvoice/type/GENERATE_EWAYBILL/version/V1_03"


class WhitebooksClient:
    """
    Thin async wrapper over the Whitebooks REST endpoints.

    Every call returns the decoded envelope ``{data, status_cd, status_desc}``;
    interpreting ``status_cd`` is left to the caller.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._client = httpx.AsyncClient(
            base_url=settings.WHITEBOOKS_API_URL,
            timeout=float(settings.WHITEBOOKS_TIMEOUT),
            transport=transport,
        )

    def _headers(self, auth_token: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "ip_address": settings.WHITEBOOKS_IP_ADDRESS or "",
            "client_id": settings.WHITEBOOKS_CLIENT_ID or "",
            "client_secret": settings.WHITEBOOKS_CLIENT_SECRET or "",
            "username": settings.WHITEBOOKS_USERNAME or "",
            "gstin": settings.WHITEBOOKS_GSTIN or "",
        }
        if auth_token is None:
            headers["password"] = settings.WHITEBOOKS_PASSWORD or ""
        else:
            headers["auth-token"] = auth_token
        return headers

    async def _request(self, method: str, path: str, auth_token: Optional[str] = None, **kwargs) -> Dict[str, Any]:
        params = {"email": settings.WHITEBOOKS_EMAIL or ""}
        params.update(kwargs.pop("params", {}))

        try:
            response = await self._client.request(
                method, path, params=params, headers=self._headers(auth_token), **kwargs
            )
            response.raise_for_status()
            return response.json()

        except httpx.TimeoutException:
            logger.error(f"Whitebooks timeout on {path}")
            raise ExternalServiceError("E-invoice provider is taking too long to respond", {"status_desc": "timeout"})
        except httpx.HTTPStatusError as e:
            status_desc = _status_desc_from(e.response)
            logger.error(f"Whitebooks {path} returned {e.response.status_code}: {status_desc}")
            raise ExternalServiceError("E-invoice provider rejected the request", {"status_desc": status_desc})
        except httpx.RequestError as e:
            logger.error(f"Network error calling Whitebooks {path}: {e}")
            raise ExternalServiceError("Unable to connect to e-invoice provider", {"status_desc": str(e)})
        except ValueError:
            logger.error(f"Whitebooks {path} returned a non-JSON body")
            raise ExternalServiceError("E-invoice provider returned an invalid response", {"status_desc": "invalid JSON"})

    async def authenticate(self) -> Dict[str, Any]:
        logger.info("Authenticating with Whitebooks")
        return await self._request("GET", AUTHENTICATE_PATH)

    async def gstn_details(self, gstin: str, auth_token: str) -> Dict[str, Any]:
        logger.debug(f"GSTN lookup for {gstin}")
        return await self._request("GET", GSTN_DETAILS_PATH, auth_token, params={"param1": gstin})

    async def generate_irn(self, reference_json: Dict[str, Any], auth_token: str) -> Dict[str, Any]:
        return await self._request("POST", GENERATE_IRN_PATH, auth_token, json=reference_json)

    async def generate_ewaybill(self, payload: Dict[str, Any], auth_token: str) -> Dict[str, Any]:
        return await self._request("POST", GENERATE_EWAYBILL_PATH, auth_token, json=payload)

    async def close(self):
        await self._client.aclose()


def _status_desc_from(response: httpx.Response) -> Any:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return flatten_status_desc(body.get("status_desc") or body)
    return body


# Global client instance
_whitebooks_client: Optional[WhitebooksClient] = None


def get_whitebooks_client() -> WhitebooksClient:
    """Get or create the global Whitebooks client."""
    global _whitebooks_client
    if _whitebooks_client is None:
        _whitebooks_client = WhitebooksClient()
    return _whitebooks_client


def set_whitebooks_client(client: Optional[WhitebooksClient]):
    """Swap the global client (used by tests to inject a mock transport)."""
    global _whitebooks_client
    _whitebooks_client = client


async def close_whitebooks_client():
    global _whitebooks_client
    if _whitebooks_client:
        await _whitebooks_client.close()
        _whitebooks_client = None
