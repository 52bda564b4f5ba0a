# SPDX-License-Identifier: Apache-2.0

"""NetBox API client implementation."""

import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, List, Optional

from loguru import logger
import pynetbox
import requests

from .base import BaseSourceClient, SourceRecords
from .config import Config
from .connection import ConnectionManager
from .exceptions import (
    AuthError,
    NetworkError,
    RateLimitError,
    SourceAPIError,
    SourceError,
)
from .filters import DeviceFilter
from .models import OBJECT_TYPE_DEVICE, OBJECT_TYPE_VIRTUAL_MACHINE, source_id_for
from .retry_utils import BackoffPolicy, RetryMachine


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given in seconds or as an HTTP date."""
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max((retry_at - datetime.now(timezone.utc)).total_seconds(), 0.0)


def classify_error(error: Exception, operation_name: str) -> SourceError:
    """Translate a pynetbox or requests exception into a SourceError.

    Args:
        error: Exception raised by pynetbox or requests
        operation_name: Name of the failed operation for the message

    Returns:
        SourceError: Typed error to raise in place of the original
    """
    if isinstance(error, pynetbox.RequestError):
        response = error.req
        status = getattr(response, "status_code", None)
        if status in (401, 403):
            return AuthError(
                f"{operation_name}: NetBox rejected the API token (HTTP {status})"
            )
        if status == 429:
            headers = getattr(response, "headers", None) or {}
            return RateLimitError(
                f"{operation_name}: rate limited by NetBox (HTTP 429)",
                retry_after=parse_retry_after(headers.get("Retry-After")),
            )
        if status is not None and status >= 500:
            return NetworkError(f"{operation_name}: NetBox server error (HTTP {status})")
        return SourceAPIError(f"{operation_name}: {error}")

    if isinstance(error, pynetbox.ContentError):
        return SourceAPIError(f"{operation_name}: unexpected response content: {error}")

    if isinstance(error, requests.exceptions.Timeout):
        return NetworkError(f"{operation_name}: request timed out: {error}")

    if isinstance(error, requests.exceptions.ConnectionError):
        return NetworkError(f"{operation_name}: connection failed: {error}")

    return NetworkError(f"{operation_name}: request failed: {error}")


class NetBoxClient(BaseSourceClient):
    """Client fetching inventory records from the NetBox API.

    Args:
        config: Configuration
        api: Pre-built pynetbox API instance; created on connect() if omitted
        wait: Replacement for the backoff sleep, mainly for tests
    """

    def __init__(
        self,
        config: Config,
        api: Optional[Any] = None,
        wait: Optional[Callable[[float], bool]] = None,
    ):
        self.config = config
        self.api = api
        self._connection_manager = ConnectionManager(config)
        self._device_filter = DeviceFilter(config)
        self._policy = BackoffPolicy(
            max_retries=config.max_retries,
            initial_delay=config.backoff_initial,
            backoff_factor=config.backoff_factor,
            max_delay=config.backoff_max,
        )
        self._wait = wait
        self._connected = api is not None

    def connect(self) -> None:
        """Establish connection to NetBox."""
        self.api = self._connection_manager.connect()
        self._connected = True

    def disconnect(self) -> None:
        """Close connection to NetBox."""
        self._connection_manager.disconnect()
        self._connected = False
        self.api = None

    @contextmanager
    def api_operation(self, operation_name: str):
        """Context manager for API operations with error translation.

        Args:
            operation_name: Name of the operation for logging

        Yields:
            None

        Raises:
            SourceError: Typed error for any pynetbox or requests failure
        """
        if not self._connected:
            raise SourceAPIError("Not connected to NetBox")

        try:
            logger.debug(f"Starting {operation_name}")
            yield
            logger.debug(f"Completed {operation_name}")
        except SourceError:
            raise
        except (
            pynetbox.RequestError,
            pynetbox.ContentError,
            requests.exceptions.RequestException,
        ) as e:
            raise classify_error(e, operation_name) from e

    def fetch(
        self,
        since: Optional[datetime] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> SourceRecords:
        """Fetch devices, optional virtual machines and platforms.

        Args:
            since: Only fetch objects changed since this time
            cancel_event: Event that interrupts backoff waits when set

        Returns:
            SourceRecords: Raw records

        Raises:
            AuthError: If the token is rejected
            NetworkError: If retries are exhausted on transient failures
            RateLimitError: If retries are exhausted while rate limited
            SourceAPIError: If NetBox returns any other error
            RefreshCancelledError: If cancel_event is set during a backoff
        """
        if not self._connected:
            self.connect()

        wait = self._make_wait(cancel_event)
        endpoints = [(self.api.dcim.devices, OBJECT_TYPE_DEVICE)]
        if self.config.include_virtual_machines:
            endpoints.append(
                (self.api.virtualization.virtual_machines, OBJECT_TYPE_VIRTUAL_MACHINE)
            )

        records: List[Dict[str, Any]] = []
        for endpoint, object_type in endpoints:
            records.extend(self._fetch_objects(endpoint, object_type, since, wait))

        platforms: Dict[str, Dict[str, Any]] = {}
        if self.config.fetch_platforms:
            for platform in self._run(
                "fetch platforms", lambda: self._query(self.api.dcim.platforms, {}), wait
            ):
                if platform.get("slug"):
                    platforms[platform["slug"]] = platform

        present_ids = None
        if since is not None:
            present_ids = frozenset(
                source_id
                for endpoint, object_type in endpoints
                for source_id in self._fetch_present_ids(endpoint, object_type, wait)
            )

        logger.info(
            f"Fetched {len(records)} records and {len(platforms)} platforms from NetBox"
            + (f" (changed since {since.isoformat()})" if since else "")
        )
        return SourceRecords(
            devices=records, platforms=platforms, since=since, present_ids=present_ids
        )

    def _make_wait(
        self, cancel_event: Optional[threading.Event]
    ) -> Optional[Callable[[float], bool]]:
        if self._wait is not None:
            injected = self._wait

            def wait(delay: float) -> bool:
                interrupted = injected(delay)
                return bool(interrupted) or bool(cancel_event and cancel_event.is_set())

            return wait
        if cancel_event is not None:
            return cancel_event.wait
        return None

    def _run(self, operation_name: str, func: Callable, wait) -> Any:
        """Run one API call under the retry policy."""

        def attempt():
            with self.api_operation(operation_name):
                return func()

        return RetryMachine(self._policy, wait=wait, name=operation_name).run(attempt)

    def _query(self, endpoint: Any, query_filter: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Query an endpoint, following pagination, and return plain dicts."""
        kwargs = dict(query_filter)
        if self.config.page_size:
            kwargs["limit"] = self.config.page_size
        if query_filter:
            result = endpoint.filter(**kwargs)
        else:
            result = endpoint.all(**kwargs)
        # Iterating the record set fetches every page
        return [dict(record) for record in result]

    def _fetch_objects(
        self, endpoint: Any, object_type: str, since: Optional[datetime], wait
    ) -> List[Dict[str, Any]]:
        records = []
        for base_filter in self._device_filter.normalize_filters():
            if since is not None:
                query_filter = self._device_filter.build_incremental_filter(
                    base_filter, since
                )
            else:
                query_filter = base_filter
            records.extend(
                self._run(
                    f"fetch {object_type}s",
                    lambda query_filter=query_filter: self._query(endpoint, query_filter),
                    wait,
                )
            )

        unique_records = self._device_filter.deduplicate_records(records)
        return [dict(record, object_type=object_type) for record in unique_records]

    def _fetch_present_ids(self, endpoint: Any, object_type: str, wait) -> List[str]:
        source_ids = []
        for base_filter in self._device_filter.normalize_filters():
            brief_filter = self._device_filter.build_brief_filter(base_filter)
            records = self._run(
                f"list {object_type} ids",
                lambda brief_filter=brief_filter: self._query(endpoint, brief_filter),
                wait,
            )
            source_ids.extend(
                source_id_for(object_type, record["id"])
                for record in records
                if record.get("id") is not None
            )
        return source_ids

    def __enter__(self) -> "NetBoxClient":
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager and cleanup resources."""
        self.disconnect()
