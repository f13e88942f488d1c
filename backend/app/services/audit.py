from typing import Optional

from sqlmodel import Session, select

from app.models.audit import AuditLog


class AuditService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def record_event(
        self,
        event_type: str,
        workflow_id: str | None = None,
        company_id: str | None = None,
        actor_id: str | None = None,
        details: dict | None = None,
    ) -> AuditLog:
        log = AuditLog(
            workflow_id=workflow_id,
            company_id=company_id,
            event_type=event_type,
            actor_id=actor_id,
            details=details or {},
        )
        self.session.add(log)
        self.session.commit()
        self.session.refresh(log)
        return log

    def list_events(
        self,
        workflow_id: Optional[str] = None,
        company_id: Optional[str] = None,
        event_type: Optional[str] = None,
        limit: int = 50,
    ) -> list[AuditLog]:
        query = select(AuditLog)
        if workflow_id:
            query = query.where(AuditLog.workflow_id == workflow_id)
        if company_id:
            query = query.where(AuditLog.company_id == company_id)
        if event_type:
            query = query.where(AuditLog.event_type == event_type)
        query = query.order_by(AuditLog.created_at.desc()).limit(max(limit, 1))
        return list(self.session.exec(query).all())
