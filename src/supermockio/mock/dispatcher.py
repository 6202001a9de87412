"""
SuperMockio Mock Dispatcher

Selects the stored response for an inbound mock request.

Features:
- Exact path match, then OpenAPI path-template pattern match
- Status code and example name selection via request headers
- Strict mode (MOCKER_STRICT_MODE): unmatched selections are a 404 with details
- Non-strict mode: unmatched selections fall back to a random response
"""

import logging
import random
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

from ..common.config import strict_mode_enabled
from ..errors import DispatchNotFound
from .store import ResponseRecord, ServiceStore

logger = logging.getLogger("supermockio.mock")

MOCKS_PREFIX = '/mocks'

SERVICE_NOT_FOUND_MESSAGE = "The service cannot be found"
NO_RESPONSE_MESSAGE = "No response defined for this endpoint"


@dataclass
class DispatchResult:
    """Outcome of a dispatch."""

    record: ResponseRecord
    substituted: bool = False
    reason: str = ""


def normalize_path(path: str, owner: str = '', name: str = '', version: str = '') -> str:
    """
    Normalize an inbound request path for lookup.

    Strips the `/mocks/{owner}/{name}/{version}` prefix when present and any
    query string, ensures a leading slash and drops a trailing one.
    """
    path = (path or '').split('?', 1)[0]
    if not path.startswith('/'):
        path = '/' + path

    prefix = f"{MOCKS_PREFIX}/{owner}/{name}/{version}"
    if owner and (path == prefix or path.startswith(prefix + '/')):
        path = path[len(prefix):] or '/'

    if len(path) > 1 and path.endswith('/'):
        path = path.rstrip('/') or '/'

    return path


def path_matches_template(path: str, template: Optional[str]) -> bool:
    """Check if a concrete path fits an OpenAPI path template."""
    if not template:
        return False

    # Replace {param} with a single-segment wildcard, keep the rest literal
    parts = re.split(r'(\{[^}/]+\})', template)
    pattern = ''.join(
        r'[^/]+' if part.startswith('{') and part.endswith('}') else re.escape(part)
        for part in parts
    )
    return re.match(f'^{pattern}/?$', path) is not None


def _status_value(status_code: Union[int, str, None]) -> Union[int, str, None]:
    # Header values arrive as text; non-numeric values never match a record
    if status_code is None or isinstance(status_code, int):
        return status_code
    text = str(status_code).strip()
    if not text:
        return None
    return int(text) if text.isdigit() else text


class MockDispatcher:
    """
    Request-time matcher over stored response records.

    Example:
        dispatcher = MockDispatcher(store)
        record = dispatcher.dispatch('alice', 'petstore', '1.0.0', '/pets/42', 'GET',
                                     status_code=404)
    """

    def __init__(
        self,
        store: ServiceStore,
        strict_mode: Optional[Callable[[], bool]] = None,
        rng: Optional[random.Random] = None
    ):
        """
        Initialize mock dispatcher.

        Args:
            store: Store holding services and records
            strict_mode: Callable returning the strict flag (reads
                MOCKER_STRICT_MODE on every call if None)
            rng: Random source for non-strict substitution
        """
        self.store = store
        self.strict_mode = strict_mode or strict_mode_enabled
        self.rng = rng or random.Random()

    def dispatch(
        self,
        owner: str,
        name: str,
        version: str,
        path: str,
        method: str,
        status_code: Union[int, str, None] = None,
        example_name: Optional[str] = None
    ) -> ResponseRecord:
        """
        Find the stored response for a request.

        Raises:
            DispatchNotFound: Unknown service, unknown endpoint, or (strict
                mode) no record with the requested status/example
        """
        return self.find_response(owner, name, version, path, method, status_code, example_name).record

    def find_response(
        self,
        owner: str,
        name: str,
        version: str,
        path: str,
        method: str,
        status_code: Union[int, str, None] = None,
        example_name: Optional[str] = None
    ) -> DispatchResult:
        """Same as `dispatch()`, also reporting whether a substitute was served."""
        service = self.store.find_service_by_identity(owner, name, version)
        if service is None:
            raise DispatchNotFound(SERVICE_NOT_FOUND_MESSAGE)

        path = normalize_path(path, owner, name, version)
        method = method.lower()
        status = _status_value(status_code)
        example_name = example_name or None

        candidates = self._candidates(service.id, path, method)

        for record in candidates:
            if status is not None and record.status_code != status:
                continue
            if example_name is not None and record.example_name != example_name:
                continue
            logger.debug(f"Matched {method.upper()} {path} -> {record.status_code} ({record.example_name})")
            return DispatchResult(record=record, reason="Selection match")

        if self.strict_mode():
            raise DispatchNotFound(
                "The request endpoint is not defined in this service with the following criteria: "
                f"statusCode = {status_code or 'N/A'}, exampleName = {example_name or 'N/A'}."
            )

        if not candidates:
            raise DispatchNotFound(NO_RESPONSE_MESSAGE)

        record = self.rng.choice(candidates)
        logger.debug(
            f"No record for {method.upper()} {path} with status={status_code} example={example_name}, "
            f"serving {record.status_code} ({record.example_name})"
        )
        return DispatchResult(record=record, substituted=True, reason="Random substitute")

    def _candidates(self, service_id: str, path: str, method: str) -> List[ResponseRecord]:
        exact = self.store.find_responses(service_id, path=path, method=method)
        if exact:
            return exact

        # Generated paths hold sample parameter values; fall back to the template
        return [
            record for record in self.store.find_responses(service_id, method=method)
            if path_matches_template(path, record.path_template)
        ]
