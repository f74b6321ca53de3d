"""Repository for permission requests."""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.db.models import PermissionRequest
from cadence.db.repositories.base import BaseRepository


class PermissionRepository(BaseRepository[PermissionRequest]):
    """Repository for permission request operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, PermissionRequest)

    async def find_latest(self, endpoint: str, args_key: str, status: str) -> PermissionRequest | None:
        """Get the newest request for an exact endpoint/args pair in a given status."""
        stmt = (
            select(PermissionRequest)
            .where(
                PermissionRequest.endpoint == endpoint,
                PermissionRequest.args_key == args_key,
                PermissionRequest.status == status,
            )
            .order_by(PermissionRequest.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def transition(self, request_id: str, from_status: str, to_status: str) -> bool:
        """Move a request between statuses only if it is still in from_status.

        Returns:
            True if this call performed the transition.
        """
        result = await self.session.execute(
            update(PermissionRequest)
            .where(PermissionRequest.id == request_id, PermissionRequest.status == from_status)
            .values(status=to_status, updated_at=datetime.utcnow())
        )
        return result.rowcount == 1

    async def attach_message(self, request_ids: list[str], message_id: str) -> None:
        """Link requests to the message that paused waiting for them."""
        if not request_ids:
            return
        await self.session.execute(
            update(PermissionRequest)
            .where(PermissionRequest.id.in_(request_ids))
            .values(message_id=message_id)
        )
