"""
Base API Connector Class for the health records backend
Provides a thin, timeout-bounded HTTP layer over requests
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from dataclasses import dataclass
import logging

import requests

from migrant_core.errors import ApiRequestFailedError

logger = logging.getLogger(__name__)


@dataclass
class APIConfig:
    """Configuration for API connection"""
    api_name: str
    base_url: str
    api_key: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    timeout: float = 15.0


class BaseAPIConnector(ABC):
    """Abstract base class for all backend connectors"""

    def __init__(self, config: APIConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

        self.session.headers.update({"Content-Type": "application/json"})
        if config.headers:
            self.session.headers.update(config.headers)

        if config.api_key:
            self._set_auth_header()

    def _set_auth_header(self):
        """Bearer token, as issued by the backend's /auth/login"""
        self.session.headers.update({"Authorization": f"Bearer {self.config.api_key}"})

    @abstractmethod
    def validate_payload(self, payload: Any) -> bool:
        """Check a decoded response body has the expected shape"""
        pass

    def _make_request(
        self,
        endpoint: str,
        method: str = "GET",
        params: Optional[Dict] = None,
        data: Optional[Dict] = None
    ) -> Any:
        """
        Make one HTTP request and decode its JSON body.

        Args:
            endpoint: API endpoint (appended to base_url)
            method: HTTP method (GET, POST, etc.)
            params: Query parameters
            data: Request body data

        Returns:
            Decoded JSON body

        Raises:
            ApiRequestFailedError: on transport errors, timeouts, non-2xx
                responses and bodies that are not valid JSON
        """
        url = f"{self.config.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=data,
                timeout=self.config.timeout
            )
        except requests.exceptions.Timeout as e:
            raise ApiRequestFailedError(
                f"{self.config.api_name} request timed out after {self.config.timeout}s",
                endpoint=endpoint,
                details={"error": str(e)},
            )
        except requests.exceptions.RequestException as e:
            raise ApiRequestFailedError(
                f"API request failed for {self.config.api_name}: {e}",
                endpoint=endpoint,
            )

        if not response.ok:
            raise ApiRequestFailedError(
                f"API error: {response.status_code}",
                endpoint=endpoint,
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ApiRequestFailedError(
                f"Invalid JSON from {self.config.api_name}: {e}",
                endpoint=endpoint,
                status_code=response.status_code,
            )

        if not self.validate_payload(payload):
            raise ApiRequestFailedError(
                f"Unexpected response shape from {self.config.api_name}",
                endpoint=endpoint,
                status_code=response.status_code,
            )

        return payload

    def close(self) -> None:
        self.session.close()
