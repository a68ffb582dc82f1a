"""Workspace membership lookups and role checks (membership itself is managed elsewhere)."""
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from spend_ledger.models import WorkspaceMember
from spend_ledger.models.enums import WorkspaceRole

ADMIN_ROLES = (WorkspaceRole.OWNER, WorkspaceRole.ADMIN)
OWNER_ROLES = (WorkspaceRole.OWNER,)


async def get_membership(db: AsyncSession, user_id: str, workspace_id: UUID) -> Optional[WorkspaceMember]:
    r = await db.execute(
        select(WorkspaceMember).where(
            WorkspaceMember.user_id == user_id,
            WorkspaceMember.workspace_id == workspace_id,
        )
    )
    return r.scalar_one_or_none()


async def get_membership_with_role(
    db: AsyncSession,
    user_id: str,
    workspace_id: UUID,
    roles: Iterable[WorkspaceRole],
) -> Optional[WorkspaceMember]:
    """Membership nếu role nằm trong roles, ngược lại None."""
    membership = await get_membership(db, user_id, workspace_id)
    if membership is None:
        return None
    allowed = {role.value for role in roles}
    return membership if membership.role in allowed else None
