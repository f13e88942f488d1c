from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from app.schemas.workflow import ResolvedTemplate, SessionContext, Template, Workflow
from app.services.stores import TemplateStore
from app.utils.envelope import extract_id, first_present, unwrap_envelope

logger = logging.getLogger("signflow.resolver")

ACTIVE_STATUS = "ACTIVE"


class ResolutionError(RuntimeError):
    """A single template could not be used; never escapes the resolver."""

    def __init__(self, template_id: str | None, reason: str) -> None:
        super().__init__(f"Template {template_id or '?'}: {reason}")
        self.template_id = template_id
        self.reason = reason


def passes_active(is_active: Any = None, status: Any = None) -> bool:
    """An explicit ``False`` flag or a status other than ACTIVE marks a record inactive."""
    if is_active is False:
        return False
    if status is not None and str(status).strip().upper() != ACTIVE_STATUS:
        return False
    return True


def _nested(reference: Mapping[str, Any]) -> Mapping[str, Any] | None:
    nested = reference.get("template_id")
    return nested if isinstance(nested, Mapping) else None


def is_active_reference(reference: Mapping[str, Any]) -> bool:
    """Reference-level flag, reference-level status and nested template status must all pass."""
    if not passes_active(reference.get("is_active"), reference.get("status")):
        return False
    nested = _nested(reference)
    if nested is not None and not passes_active(nested.get("is_active"), nested.get("status")):
        return False
    return True


def extract_template_id(reference: Mapping[str, Any]) -> str | None:
    """Template id precedence: nested object id, bare reference, the reference's own id fields."""
    nested = _nested(reference)
    if nested is not None:
        nested_id = extract_id(nested)
        if nested_id:
            return nested_id
    bare = reference.get("template_id")
    if isinstance(bare, (str, int)) and str(bare).strip():
        return str(bare).strip()
    return extract_id(first_present(reference, "templateId", "template", "_id", "id"))


def template_references(workflow: Workflow) -> list[dict[str, Any]]:
    """The workflow's template references; older payloads call the list ``templates``."""
    references = workflow.document_templates or workflow.templates or []
    return [item for item in references if isinstance(item, Mapping)]


def active_references(references: list[dict[str, Any]]) -> list[tuple[dict[str, Any], str]]:
    """References passing the active filter, each paired with its usable template id."""
    usable: list[tuple[dict[str, Any], str]] = []
    for reference in references:
        if not is_active_reference(reference):
            logger.warning("Skipping inactive template reference %s", extract_template_id(reference))
            continue
        template_id = extract_template_id(reference)
        if not template_id:
            logger.warning("Dropping template reference without a usable id: %s", reference)
            continue
        usable.append((reference, template_id))
    return usable


class TemplateResolver:
    def __init__(self, store: TemplateStore) -> None:
        self.store = store

    async def _fetch(self, template_id: str, context: SessionContext) -> Template:
        try:
            raw = await self.store.get_template(template_id, context.company_id)
        except Exception as exc:
            raise ResolutionError(template_id, f"fetch failed: {exc}") from exc

        record = unwrap_envelope(raw)
        if record is None:
            raise ResolutionError(template_id, "response envelope holds no object")
        try:
            template = Template.model_validate(record)
        except ValidationError as exc:
            raise ResolutionError(template_id, "malformed template record") from exc

        if not passes_active(template.is_active, template.status):
            raise ResolutionError(template_id, f"template is not active (status={template.status})")
        if not template.id:
            template.id = template_id
        return template

    async def resolve(self, references: list[dict[str, Any]], context: SessionContext) -> list[ResolvedTemplate]:
        """Fetch every active reference concurrently and keep the ones that resolve.

        Results stay in reference order whatever order the fetches finish in.
        A failed or inactive template is logged and left out; an empty result
        is returned as an empty list.
        """
        usable = active_references(references)
        outcomes = await asyncio.gather(
            *(self._fetch(template_id, context) for _, template_id in usable),
            return_exceptions=True,
        )

        resolved: list[ResolvedTemplate] = []
        for position, ((reference, template_id), outcome) in enumerate(zip(usable, outcomes)):
            if isinstance(outcome, ResolutionError):
                logger.warning("Template %s dropped: %s", template_id, outcome.reason)
                continue
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.warning("Template %s dropped: %s", template_id, outcome)
                continue
            resolved.append(
                ResolvedTemplate(
                    position=position,
                    template_id=template_id,
                    reference=reference,
                    template=outcome,
                )
            )
        return resolved
