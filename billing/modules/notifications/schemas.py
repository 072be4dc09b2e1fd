from pydantic import BaseModel
from typing import Optional, List
from uuid import UUID
from datetime import datetime

from billing.modules.notifications.models import NotificationSeverity


class NotificationOut(BaseModel):
    id: UUID
    tenant_id: UUID
    type: str
    title: str
    message: str
    severity: NotificationSeverity
    reference_id: Optional[UUID]
    reference_type: Optional[str]
    link: Optional[str]
    read: bool
    read_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationList(BaseModel):
    notifications: List[NotificationOut]
    total: int
    unread: int
    limit: int
    offset: int
