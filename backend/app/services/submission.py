from __future__ import annotations

import hashlib
import json
import logging
from typing import Any

from sqlmodel import Session, select

from app.models.base import utcnow
from app.models.workflow import SubmissionPhase, SubmissionState, WorkflowSubmission
from app.schemas.workflow import SessionContext, SubmissionResult, WorkflowResponsePayload
from app.services.audit import AuditService
from app.services.recipients import RecipientBindings
from app.services.stores import WorkflowResponseService
from app.utils.envelope import ENVELOPE_PATHS, extract_id, first_present, unwrap_envelope

logger = logging.getLogger("signflow.submission")


class SubmissionError(RuntimeError):
    """Terminal failure of one submission phase."""

    def __init__(self, phase: SubmissionPhase, message: str, *, response_id: str | None = None) -> None:
        super().__init__(f"{phase.value}: {message}")
        self.phase = phase
        self.message = message
        self.response_id = response_id


class SubmissionTransportError(SubmissionError):
    pass


class ResponseIdMissingError(SubmissionError):
    def __init__(self) -> None:
        super().__init__(SubmissionPhase.CREATE, "workflow response was created without an id")


def extract_response_id(raw: Any) -> str | None:
    """Id of a created response: ``data.data._id``, then ``data._id``, then a bare ``_id``/``id``."""
    record = unwrap_envelope(
        raw,
        ENVELOPE_PATHS,
        accept=lambda candidate: first_present(candidate, "_id", "id") is not None,
    )
    return extract_id(record) if record else None


def payload_digest(payload: WorkflowResponsePayload) -> str:
    canonical = json.dumps(payload.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class SubmissionLedger:
    """Persists submission attempts so a created-but-unsent response can be sent again."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def start(self, workflow_id: str, context: SessionContext, digest: str) -> WorkflowSubmission:
        submission = WorkflowSubmission(
            workflow_id=workflow_id,
            company_id=context.company_id,
            submitted_by=context.user_id,
            payload_digest=digest,
        )
        return self.save(submission)

    def save(self, submission: WorkflowSubmission, **changes: Any) -> WorkflowSubmission:
        for key, value in changes.items():
            setattr(submission, key, value)
        if changes:
            submission.updated_at = utcnow()
        self.session.add(submission)
        self.session.commit()
        self.session.refresh(submission)
        return submission

    def resumable(self, workflow_id: str, company_id: str, digest: str) -> WorkflowSubmission | None:
        statement = (
            select(WorkflowSubmission)
            .where(WorkflowSubmission.workflow_id == workflow_id)
            .where(WorkflowSubmission.company_id == company_id)
            .where(WorkflowSubmission.payload_digest == digest)
            .where(WorkflowSubmission.response_id.is_not(None))
            .order_by(WorkflowSubmission.created_at.desc())
        )
        for submission in self.session.exec(statement).all():
            if submission.state == SubmissionState.SENT:
                return None
            if submission.state == SubmissionState.CREATED or submission.failed_phase == SubmissionPhase.SEND:
                return submission
        return None

    def list_for_workflow(self, workflow_id: str) -> list[WorkflowSubmission]:
        statement = (
            select(WorkflowSubmission)
            .where(WorkflowSubmission.workflow_id == workflow_id)
            .order_by(WorkflowSubmission.created_at.desc())
        )
        return list(self.session.exec(statement).all())


class SubmissionOrchestrator:
    """Runs the create -> send transaction for one workflow.

    Idle -> Creating -> Created -> Sending -> Sent; Failed is reachable from
    Creating and Sending. Nothing is retried automatically. With a ledger,
    re-submitting an identical payload reuses a response that was created
    but never sent instead of creating a second one.
    """

    def __init__(
        self,
        service: WorkflowResponseService,
        *,
        ledger: SubmissionLedger | None = None,
        audit_service: AuditService | None = None,
    ) -> None:
        self.service = service
        self.ledger = ledger
        self.audit_service = audit_service
        self.state = SubmissionState.IDLE
        self.response_id: str | None = None

    def _audit(self, event_type: str, workflow_id: str, context: SessionContext, **details: Any) -> None:
        if self.audit_service:
            self.audit_service.record_event(
                event_type=event_type,
                workflow_id=workflow_id,
                company_id=context.company_id,
                actor_id=context.user_id,
                details={key: value for key, value in details.items() if value is not None},
            )

    def _fail(
        self,
        error: SubmissionError,
        workflow_id: str,
        context: SessionContext,
        record: WorkflowSubmission | None,
    ) -> SubmissionError:
        self.state = SubmissionState.FAILED
        logger.error("Workflow %s submission failed during %s: %s", workflow_id, error.phase.value, error.message)
        if self.ledger and record is not None:
            self.ledger.save(
                record,
                state=SubmissionState.FAILED,
                failed_phase=error.phase,
                error_message=error.message,
                response_id=error.response_id or record.response_id,
            )
        self._audit(
            "workflow_response_failed",
            workflow_id,
            context,
            phase=error.phase.value,
            message=error.message,
            response_id=error.response_id,
        )
        return error

    async def submit(
        self,
        workflow_id: str,
        context: SessionContext,
        bindings: RecipientBindings,
        payload: WorkflowResponsePayload,
    ) -> SubmissionResult:
        if self.state in (SubmissionState.CREATING, SubmissionState.SENDING):
            raise RuntimeError(f"Submission for workflow {workflow_id} already in progress")
        self.state = SubmissionState.IDLE
        self.response_id = None
        bindings.require_ready()

        digest = payload_digest(payload)
        record: WorkflowSubmission | None = None
        resumed = False
        if self.ledger:
            record = self.ledger.resumable(workflow_id, context.company_id, digest)

        if record is not None:
            resumed = True
            self.response_id = record.response_id
            self.state = SubmissionState.CREATED
            logger.info("Workflow %s: resuming unsent response %s", workflow_id, self.response_id)
        else:
            self.state = SubmissionState.CREATING
            if self.ledger:
                record = self.ledger.start(workflow_id, context, digest)
                record = self.ledger.save(record, state=SubmissionState.CREATING)
            try:
                raw = await self.service.create_response(workflow_id, payload.model_dump(mode="json"))
            except Exception as exc:
                raise self._fail(
                    SubmissionTransportError(SubmissionPhase.CREATE, str(exc) or exc.__class__.__name__),
                    workflow_id,
                    context,
                    record,
                ) from exc

            self.response_id = extract_response_id(raw)
            if not self.response_id:
                raise self._fail(ResponseIdMissingError(), workflow_id, context, record)

            self.state = SubmissionState.CREATED
            if self.ledger and record is not None:
                record = self.ledger.save(record, state=SubmissionState.CREATED, response_id=self.response_id)
            logger.info("Workflow %s: response %s created", workflow_id, self.response_id)
            self._audit("workflow_response_created", workflow_id, context, response_id=self.response_id)

        self.state = SubmissionState.SENDING
        if self.ledger and record is not None:
            record = self.ledger.save(record, state=SubmissionState.SENDING, failed_phase=None, error_message=None)
        try:
            await self.service.send_response(workflow_id, self.response_id)
        except Exception as exc:
            raise self._fail(
                SubmissionTransportError(
                    SubmissionPhase.SEND,
                    str(exc) or exc.__class__.__name__,
                    response_id=self.response_id,
                ),
                workflow_id,
                context,
                record,
            ) from exc

        self.state = SubmissionState.SENT
        if self.ledger and record is not None:
            record = self.ledger.save(record, state=SubmissionState.SENT, sent_at=utcnow())
        logger.info("Workflow %s: response %s sent", workflow_id, self.response_id)
        self._audit("workflow_response_sent", workflow_id, context, response_id=self.response_id, resumed=resumed)

        return SubmissionResult(
            submission_id=record.id if record is not None else None,
            state=self.state,
            response_id=self.response_id,
            resumed=resumed,
        )
