# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Shared request handling for the webinar API
"""
import logging
import time
from typing import Any, Dict, Optional

import requests

from utils.errors import InvalidArgumentError, RemoteApiError
from utils.logger import StructuredLogger

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200
ERROR_BODY_LIMIT = 500


def check_page_size(size: int):
    if not isinstance(size, int) or size < 1 or size > MAX_PAGE_SIZE:
        raise InvalidArgumentError(f"Page size must be between 1 and {MAX_PAGE_SIZE}, got {size!r}")


class ApiBase:
    """Sends single, non-retried requests; any failure becomes a RemoteApiError"""

    def __init__(self, base_url: str, timeout: float = 30, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.structured_logger = StructuredLogger(__name__)

    def _request(self, method: str, path: str, access_token: str,
                 params: Optional[Dict] = None, json_body: Optional[Dict] = None) -> Any:
        if not access_token:
            raise InvalidArgumentError("Access token is required.")

        url = f"{self.base_url}{path}"
        headers = {
            'Authorization': f'Bearer {access_token}',
            'Accept': 'application/json'
        }
        started = time.monotonic()

        try:
            response = self.session.request(
                method, url, headers=headers, params=params, json=json_body, timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            self.structured_logger.log_api_call(method, path, error='timeout')
            raise RemoteApiError(f"Request timeout: {method} {path}") from e
        except requests.exceptions.RequestException as e:
            self.structured_logger.log_api_call(method, path, error=type(e).__name__)
            raise RemoteApiError(f"Connection error: {method} {path}: {e}") from e

        duration_ms = (time.monotonic() - started) * 1000
        self.structured_logger.log_api_call(method, path, status_code=response.status_code,
                                            duration_ms=duration_ms)

        if not 200 <= response.status_code < 300:
            body = (response.text or '')[:ERROR_BODY_LIMIT]
            raise RemoteApiError(
                f"{method} {path} failed: {response.status_code} - {body}",
                status_code=response.status_code,
                body=body
            )

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise RemoteApiError(f"{method} {path} returned invalid JSON",
                                 status_code=response.status_code) from e
