"""Best-effort audit sink. A failed write is logged and never reaches the caller."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from app.models.audit import AuditChange, AuditRecord
from app.services import db

logger = logging.getLogger(__name__)


def change(field: str, old_value: Any = None, new_value: Any = None) -> AuditChange:
    return AuditChange(field=field, old_value=old_value, new_value=new_value)


async def record(type_: str, action: str, user_id: str, changes: list[AuditChange]) -> None:
    entry = AuditRecord(
        id=uuid.uuid4().hex,
        type=type_,
        action=action,
        user_id=user_id,
        changes=changes,
        created_at=datetime.now(timezone.utc),
    )
    try:
        await db.create_audit_log(entry)
    except Exception:
        logger.exception("Audit write failed for %s/%s by %s", type_, action, user_id)
