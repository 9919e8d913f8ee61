"""HTTP client for a remote server's admin db endpoints."""

import logging
import os
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .exceptions import (
    ForbiddenError,
    NotFoundError,
    PortError,
    UnprocessableEntityError,
    UnsupportedFormatError,
    UnsupportedMediaTypeError,
)

logger = logging.getLogger(__name__)

STATUS_ERRORS = {
    400: UnsupportedFormatError,
    403: ForbiddenError,
    404: NotFoundError,
    415: UnsupportedMediaTypeError,
    422: UnprocessableEntityError,
}


class AdminAPIClient:
    """
    Client for the db export, import, backup and wipe endpoints.

    Supports:
    - Bearer or custom auth scheme tokens
    - Retry with backoff on transient server errors
    - Mapping error responses to dbport exceptions
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        auth_scheme: str = "Bearer",
        session: Optional[requests.Session] = None,
        retry_config: Optional[Dict[str, Any]] = None,
        timeout: float = 60.0
    ):
        """
        Initialize the client.

        Args:
            base_url: Admin API root, e.g. https://example.com/admin/api
            token: Access token sent in the Authorization header
            auth_scheme: Authorization scheme prefix
            session: Custom requests session
            retry_config: {"max_retries": int, "backoff_factor": float}
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._retry_config = retry_config or {}
        self._session = session or self._create_session()
        if token:
            self._session.headers["Authorization"] = f"{auth_scheme} {token}"

    def _create_session(self) -> requests.Session:
        """Create a requests session with retry logic."""
        session = requests.Session()

        retries = Retry(
            total=self._retry_config.get("max_retries", 3),
            backoff_factor=self._retry_config.get("backoff_factor", 1.0),
            status_forcelist=[429, 502, 503, 504],
            allowed_methods=["GET", "DELETE"],
        )

        adapter = HTTPAdapter(max_retries=retries)
        session.mount("https://", adapter)
        session.mount("http://", adapter)

        return session

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        kwargs.setdefault("timeout", self.timeout)
        response = self._session.request(method, self._url(path), **kwargs)
        logger.debug(f"{method} {path} -> {response.status_code}")
        if response.status_code >= 400:
            raise self._error_for(response)
        return response

    def _error_for(self, response: requests.Response) -> PortError:
        message = f"HTTP {response.status_code}"
        context = None
        try:
            body = response.json()
        except ValueError:
            body = None
            context = response.text[:200] or None

        errors = body.get("errors") if isinstance(body, dict) else None
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            message = errors[0].get("message") or message
            context = errors[0].get("context")
        elif body is not None:
            context = response.text[:200] or None

        error_class = STATUS_ERRORS.get(response.status_code, PortError)
        return error_class(message, context=context)

    def export(
        self,
        include: Optional[List[str]] = None,
        filename: Optional[str] = None
    ) -> Dict[str, Any]:
        """Fetch the {"db": [document]} export, or a stored backup by filename."""
        params = {}
        if include:
            params["include"] = ",".join(include)
        if filename:
            params["filename"] = filename
        return self._request("GET", "db/", params=params).json()

    def import_file(self, path: str) -> Dict[str, Any]:
        """Upload an export file; returns {"db": [...], "problems": [...]}."""
        with open(path, "rb") as f:
            files = {"importfile": (os.path.basename(path), f, "application/json")}
            response = self._request("POST", "db/", files=files)
        result = response.json()
        problems = result.get("problems") or []
        if problems:
            logger.warning(f"Import of {path} reported {len(problems)} problems")
        return result

    def backup(self, filename: Optional[str] = None) -> Dict[str, Any]:
        """Ask the server to write a backup file."""
        params = {"filename": filename} if filename else {}
        return self._request("POST", "db/backup", params=params).json()

    def delete_all(self) -> None:
        """Delete all content on the server."""
        self._request("DELETE", "db/")
