import json
from sqlalchemy.orm import Session
from cafeapp.models.core import AuditLog

def audit(db: Session, cafe_id: str, actor_admin_id: str | None, entity: str, entity_id: str,
          action: str, before: dict | None = None, after: dict | None = None):
    entry = AuditLog(
        cafe_id=cafe_id,
        actor_admin_id=actor_admin_id,
        entity=entity, entity_id=entity_id,
        action=action,
        before=json.dumps(before) if before else None,
        after=json.dumps(after) if after else None,
    )
    db.add(entry)
