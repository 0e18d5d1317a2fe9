import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    id: uuid.UUID
    type: str
    title: str
    message: str
    severity: str
    target_roles: List[str]
    metadata: Dict[str, Any]
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_dismissed: bool


class MonitorIntervalUpdate(BaseModel):
    minutes: float = Field(..., description="Minutes between low-stock sweeps (at least 1).")
