from pydantic import BaseModel
from datetime import datetime

from models.AuditTrail import AuditEntityEnum


class AuditTrailResponse(BaseModel):
    id: int
    user_name: str
    entity_type: AuditEntityEnum
    entity_id: str
    description: str
    timestamp: datetime

    class Config:
        from_attributes = True
