from sqlalchemy.orm import Session

from models.AuditTrail import AuditTrail, AuditEntityEnum


class AuditService:
    """Writes audit rows inside the caller's transaction; never commits."""

    def __init__(self, db: Session):
        self.db = db

    def default_log(self,
                    entity_id,
                    entity_type: AuditEntityEnum,
                    description: str,
                    user_name: str) -> AuditTrail:

        audit_entry = AuditTrail(
            entity_id=str(entity_id),
            entity_type=entity_type,
            description=description,
            user_name=user_name
        )
        self.db.add(audit_entry)
        return audit_entry
