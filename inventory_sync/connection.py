# SPDX-License-Identifier: Apache-2.0

"""NetBox API connection management."""

from typing import Optional

from loguru import logger
import pynetbox
import requests
from requests.adapters import HTTPAdapter
import urllib3
from urllib3.util.retry import Retry

from .config import Config


class TimeoutHTTPAdapter(HTTPAdapter):
    """HTTP adapter applying a default timeout to every request."""

    def __init__(self, *args, timeout: Optional[float] = None, **kwargs):
        self.timeout = timeout
        super().__init__(*args, **kwargs)

    def send(self, request, **kwargs):
        if kwargs.get("timeout") is None:
            kwargs["timeout"] = self.timeout
        return super().send(request, **kwargs)


class ConnectionManager:
    """Manages NetBox API connections."""

    def __init__(self, config: Config):
        self.config = config
        self.api: Optional[pynetbox.api] = None
        self._session: Optional[requests.Session] = None

    def _configure_session(self) -> requests.Session:
        """Configure requests session with a per-request timeout.

        Returns:
            requests.Session: Configured session

        Notes:
            - urllib3 retries are disabled; retries are owned by RetryMachine
            - SSL verification can be disabled via ignore_ssl_errors config
        """
        session = requests.Session()

        adapter = TimeoutHTTPAdapter(
            timeout=self.config.request_timeout,
            max_retries=Retry(total=0, raise_on_status=False),
        )

        # Mount adapter for both HTTP and HTTPS
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        # Configure SSL verification
        if self.config.ignore_ssl_errors:
            urllib3.disable_warnings()
            session.verify = False
            logger.debug("SSL certificate verification disabled")

        return session

    def connect(self) -> pynetbox.api:
        """Create the NetBox API instance.

        No request is sent here; authentication and reachability problems
        surface on the first fetch.

        Returns:
            pynetbox.api: NetBox API instance
        """
        logger.info(f"Connecting to NetBox {self.config.api_endpoint}")

        self._session = self._configure_session()
        self.api = pynetbox.api(self.config.api_endpoint, token=self.config.token)
        self.api.http_session = self._session
        return self.api

    def disconnect(self) -> None:
        """Close connection and cleanup resources."""
        if self._session:
            self._session.close()
            self._session = None
        self.api = None
