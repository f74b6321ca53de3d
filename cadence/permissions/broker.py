"""Permission broker: issues, resolves and single-use-consumes grants.

A grant authorizes exactly one call: the same endpoint with arguments equal
to the approved ones. Arguments are compared through their canonical JSON
form, so object key order does not matter and 1 equals 1.0, but list order
and every other value does. A grant for a superset of arguments never
matches a subset.
"""

import json
import logging
from typing import Any

from cadence.core.errors import PermissionAlreadyResolvedError, PermissionNotFoundError
from cadence.db.database import DatabaseManager
from cadence.db.models import PermissionRequest, PermissionStatus
from cadence.db.repositories import PermissionRepository

logger = logging.getLogger(__name__)

RESOLVE_ACTIONS = {
    "approve": PermissionStatus.GRANTED,
    "decline": PermissionStatus.DECLINED,
}


def _normalize_numbers(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {key: _normalize_numbers(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_normalize_numbers(item) for item in value]
    return value


def canonical_args(args: dict[str, Any]) -> str:
    """Stable JSON encoding of call arguments used for exact matching."""
    return json.dumps(_normalize_numbers(args), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def split_endpoint(endpoint: str) -> tuple[str, str]:
    """Split ``plugin.operation`` into its parts.

    Raises:
        ValueError: If the endpoint is not a dotted path with a non-empty plugin
            and operation.
    """
    plugin, sep, operation = endpoint.strip().partition(".")
    if not sep or not plugin or not operation:
        raise ValueError(f"Endpoint must look like 'plugin.operation', got '{endpoint}'")
    return plugin, operation


class PermissionBroker:
    """Tracks permission requests in the database."""

    def __init__(self, db: DatabaseManager):
        self._db = db

    async def request(
        self,
        endpoint: str,
        args: dict[str, Any],
        description: str,
        session_key: str | None = None,
    ) -> PermissionRequest:
        """Create a pending request for one exact call.

        Raises:
            ValueError: If the endpoint or args are malformed.
        """
        if not isinstance(args, dict):
            raise ValueError("Permission args must be an object")
        plugin, operation = split_endpoint(endpoint)

        async with self._db.session() as session:
            repo = PermissionRepository(session)
            request = await repo.add(
                PermissionRequest(
                    endpoint=endpoint.strip(),
                    plugin=plugin,
                    operation=operation,
                    args=args,
                    args_key=canonical_args(args),
                    description=description,
                    status=PermissionStatus.PENDING,
                    session_key=session_key,
                )
            )
        logger.info(f"Permission requested: {request.id} for {request.endpoint}")
        return request

    async def get(self, request_id: str) -> PermissionRequest:
        """Get a request by id.

        Raises:
            PermissionNotFoundError: If no such request exists.
        """
        async with self._db.session() as session:
            request = await PermissionRepository(session).get_by_id(request_id)
        if request is None:
            raise PermissionNotFoundError(request_id)
        return request

    async def check_granted(self, endpoint: str, args: dict[str, Any]) -> str | None:
        """Return the id of the newest unused grant for exactly this call, if any."""
        async with self._db.session() as session:
            request = await PermissionRepository(session).find_latest(
                endpoint, canonical_args(args), PermissionStatus.GRANTED
            )
        return request.id if request else None

    async def consume(self, request_id: str) -> bool:
        """Mark a grant as used.

        Returns:
            True on the first consume of a granted request, False otherwise.
        """
        async with self._db.session() as session:
            consumed = await PermissionRepository(session).transition(
                request_id, PermissionStatus.GRANTED, PermissionStatus.COMPLETED
            )
        if consumed:
            logger.info(f"Permission {request_id} consumed")
        return consumed

    async def authorize(self, endpoint: str, args: dict[str, Any]) -> str | None:
        """Check for a grant and consume it in one step.

        Concurrent callers race on the consume; only one of them gets the id.
        """
        request_id = await self.check_granted(endpoint, args)
        if request_id and await self.consume(request_id):
            return request_id
        return None

    async def resolve(self, request_id: str, action: str) -> PermissionRequest:
        """Approve or decline a pending request.

        Args:
            request_id: Request to resolve.
            action: "approve" or "decline".

        Returns:
            The updated request.

        Raises:
            ValueError: If action is not approve/decline.
            PermissionNotFoundError: If the request does not exist.
            PermissionAlreadyResolvedError: If the request is no longer pending.
        """
        if action not in RESOLVE_ACTIONS:
            raise ValueError(f"Unknown action '{action}', expected approve or decline")

        async with self._db.session() as session:
            repo = PermissionRepository(session)
            request = await repo.get_by_id(request_id)
            if request is None:
                raise PermissionNotFoundError(request_id)
            if not await repo.transition(request_id, PermissionStatus.PENDING, RESOLVE_ACTIONS[action]):
                raise PermissionAlreadyResolvedError(request_id, request.status)
            await session.refresh(request)

        logger.info(f"Permission {request_id} resolved: {request.status}")
        return request

    async def attach_message(self, request_ids: list[str], message_id: str) -> None:
        """Link requests to the assistant message that paused for them."""
        async with self._db.session() as session:
            await PermissionRepository(session).attach_message(request_ids, message_id)
