from __future__ import annotations
from datetime import datetime
from typing import Any
from pydantic import BaseModel


class AuditChange(BaseModel):
    field: str
    old_value: Any = None
    new_value: Any = None


class AuditRecord(BaseModel):
    id: str
    type: str      # entry | template | member
    action: str    # create | update | generate_report
    user_id: str
    changes: list[AuditChange] = []
    created_at: datetime
