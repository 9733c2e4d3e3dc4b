"""
Form processor - runs every Action of a form through one pass.

Actions run in authoring order. Each pass gets a fresh context and output
store, so nothing recorded while loading leaks into a submission.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..api.schemas import FormDefinition
from ..util.logging import logger
from .actions import get_action_handler
from .config import get_crm_gateway
from .context import PHASE_LOAD, PHASE_MAKE, PHASE_VALIDATE, ActionContext, SkipHooks
from .crm import ICrmGateway
from .mapping import TagMapper
from .outputs import ActionOutputStore
from .schema import FormValidationError


@dataclass
class LoadResult:
    values: Dict[str, Any]
    outputs: Dict[str, Dict[str, Any]]


@dataclass
class SubmitResult:
    success: bool
    errors: List[FormValidationError] = field(default_factory=list)
    outputs: Dict[str, Dict[str, Any]] = field(default_factory=dict)


def serialize_outputs(store: ActionOutputStore) -> Dict[str, Dict[str, Any]]:
    return {output.name: output.data for output in store.outputs()}


class FormProcessor:
    """Runs load, validate and submit passes for form definitions."""

    def __init__(self, crm: Optional[ICrmGateway] = None, hooks: Optional[SkipHooks] = None,
                 mapper: Optional[TagMapper] = None):
        self.crm = crm if crm is not None else get_crm_gateway()
        self.hooks = hooks if hooks is not None else SkipHooks()
        self.mapper = mapper if mapper is not None else TagMapper()

    def _context(self, phase: str, values: Optional[Dict[str, Any]],
                 submitter_contact_id: Optional[int]) -> ActionContext:
        return ActionContext(
            crm=self.crm,
            phase=phase,
            mapper=self.mapper,
            values=dict(values or {}),
            submitter_contact_id=submitter_contact_id,
            hooks=self.hooks,
        )

    def load(self, form: FormDefinition, values: Optional[Dict[str, Any]] = None,
             submitter_contact_id: Optional[int] = None) -> LoadResult:
        """Find existing entities and return the form values they pre-populate."""
        context = self._context(PHASE_LOAD, values, submitter_contact_id)

        for order, definition in enumerate(form.actions):
            get_action_handler(definition).load(context, order)

        logger.log_operation("form.load", "success", {"form": form.name, "populated": len(context.populated)})
        return LoadResult(values=context.populated, outputs=serialize_outputs(context.store))

    def validate(self, form: FormDefinition, values: Optional[Dict[str, Any]] = None,
                 submitter_contact_id: Optional[int] = None) -> List[FormValidationError]:
        """Check every Action before anything is written."""
        context = self._context(PHASE_VALIDATE, values, submitter_contact_id)

        for definition in form.actions:
            get_action_handler(definition).validate(context)

        status = "success" if not context.errors else "rejected"
        logger.log_operation("form.validate", status, {"form": form.name, "errors": len(context.errors)})
        return list(context.errors)

    def submit(self, form: FormDefinition, values: Optional[Dict[str, Any]] = None,
               submitter_contact_id: Optional[int] = None) -> SubmitResult:
        """Validate, then make every Action in order."""
        errors = self.validate(form, values, submitter_contact_id)
        if errors:
            return SubmitResult(success=False, errors=errors)

        context = self._context(PHASE_MAKE, values, submitter_contact_id)
        for order, definition in enumerate(form.actions):
            get_action_handler(definition).make(context, order)

        logger.log_operation("form.submit", "success", {"form": form.name, "actions": len(form.actions)})
        return SubmitResult(success=True, outputs=serialize_outputs(context.store))
