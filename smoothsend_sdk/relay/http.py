"""
HTTP transport for the relayer API.

Every call returns an ApiResponse envelope; transport failures and non-2xx
responses are folded into the envelope instead of being raised.
"""
import logging
import time
from typing import Any, Dict, Optional

import requests
from pydantic import ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .._rate_limited_log import rate_limited_log
from ..exceptions import ErrorCode, http_error_code
from ..models import ApiResponse
from ..version import __version__

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = "Network error - unable to connect to relayer"

_ENVELOPE_KEYS = ("success", "data", "error", "details", "requestId")
_SENSITIVE_KEYS = ("signature", "permitData")


def sanitize_payload(payload: Any) -> Any:
    """
    Redact signatures from a request body for logging

    Args:
        payload: Request body (dict, list of dicts, or anything else)

    Returns:
        Copy of the payload safe to log
    """
    if isinstance(payload, list):
        return [sanitize_payload(item) for item in payload]
    if not isinstance(payload, dict):
        return payload

    result = {}
    for key, value in payload.items():
        if key in _SENSITIVE_KEYS and value:
            result[key] = f"[REDACTED - {len(str(value))} chars]"
        elif isinstance(value, (dict, list)):
            result[key] = sanitize_payload(value)
        else:
            result[key] = value
    return result


class HttpClient:
    """
    JSON-over-HTTP client bound to one relayer base URL.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the HTTP client

        Args:
            base_url: Relayer base URL (trailing slash is ignored)
            timeout: Per-request timeout in seconds
            session: Preconfigured session to use instead of a new one
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or self._create_session()

    @staticmethod
    def _create_session() -> requests.Session:
        session = requests.Session()
        # Only connection failures are retried here: the request never reached
        # the relayer, so this is safe even for transfer submissions.
        retries = Retry(
            total=None,
            connect=1,
            read=0,
            status=0,
            other=0,
            backoff_factor=0,
            raise_on_status=False
        )
        adapter = HTTPAdapter(max_retries=retries)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"smoothsend-sdk/{__version__}",
        })
        return session

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> ApiResponse:
        query = dict(params or {})
        # Cache buster, some gateways cache GETs aggressively
        query["_t"] = int(time.time() * 1000)
        return self.request("GET", path, params=query)

    def post(self, path: str, payload: Optional[Dict[str, Any]] = None) -> ApiResponse:
        return self.request("POST", path, payload=payload)

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None
    ) -> ApiResponse:
        """
        Send a request and normalize the outcome into an ApiResponse.

        Never raises for transport or HTTP failures.
        """
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url} params={params} body={sanitize_payload(payload)}")

        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=payload,
                timeout=self.timeout
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            rate_limited_log(
                f"Relayer unreachable at {self.base_url}: {type(e).__name__}",
                level="warning",
                interval=60,
                logger_instance=logger
            )
            return ApiResponse(
                success=False,
                error=NETWORK_ERROR_MESSAGE,
                details=str(e),
                code=ErrorCode.NETWORK_ERROR.value
            )
        except requests.RequestException as e:
            logger.error(f"Request to {url} failed: {e}")
            return ApiResponse(
                success=False,
                error=str(e) or "Unknown error",
                details=type(e).__name__,
                code=ErrorCode.UNKNOWN_ERROR.value
            )

        return self._parse_response(response)

    @staticmethod
    def _error_message(body: Any) -> Optional[str]:
        """Pull a message out of an error body, which may be a string or an object."""
        if not isinstance(body, dict):
            return None
        error = body.get("error")
        if isinstance(error, dict):
            error = error.get("message")
        if isinstance(error, str) and error:
            return error
        return None

    def _parse_response(self, response: requests.Response) -> ApiResponse:
        status = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = None

        if not 200 <= status < 300:
            error = self._error_message(body)
            logger.debug(f"Relayer returned HTTP {status}: {error}")
            return ApiResponse(
                success=False,
                error=error or f"HTTP Error {status}",
                details=body if body is not None else response.text,
                code=http_error_code(status),
                status_code=status
            )

        if not isinstance(body, dict):
            content_type = response.headers.get('Content-Type', '')
            logger.warning(f"Unexpected relayer response (Content-Type: {content_type})")
            return ApiResponse(
                success=False,
                error="Invalid JSON response from relayer",
                details=response.text[:500],
                code=ErrorCode.INVALID_RESPONSE.value,
                status_code=status
            )

        fields = {key: body[key] for key in _ENVELOPE_KEYS if key in body}
        if isinstance(fields.get("error"), dict):
            fields["error"] = self._error_message(body) or "Relayer reported an error"
            fields.setdefault("details", body["error"])
        try:
            envelope = ApiResponse.model_validate(fields)
        except ValidationError as e:
            return ApiResponse(
                success=False,
                error=f"Malformed response envelope: {e.error_count()} errors",
                details=body,
                code=ErrorCode.INVALID_RESPONSE.value,
                status_code=status
            )

        envelope.status_code = status
        return envelope

    def close(self) -> None:
        self.session.close()
