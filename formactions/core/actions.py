"""
Form Actions - the load, validate and make lifecycle for each Action kind.

Each Action is built from an `ActionDefinition` and runs inside an
`ActionContext`. `load` pre-populates form fields from existing CRM data,
`validate` reports problems before anything is written, and `make` persists
and records an output that later Actions can reference by name.
"""

from typing import Any, Dict, List, Optional

from ..api.schemas import ActionDefinition
from ..util.logging import logger
from .context import PHASE_LOAD, PHASE_MAKE, PHASE_VALIDATE, ActionContext
from .crm import CrmError
from .mapping import is_empty, prepare_data
from .relationships import (
    build_relationship_specs,
    contact_id_from_relationships,
    load_relationships,
    reconcile_relationships,
    save_relationships,
)
from .schema import OP_UPDATE


class BaseAction:
    """Template for one configured Action in a form."""

    kind: str = ""

    def __init__(self, definition: ActionDefinition):
        self.definition = definition

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def settings(self):
        return self.definition.settings

    def base_result(self) -> Dict[str, Any]:
        return {"form_action": self.kind, "name": self.name}

    def record(self, context: ActionContext, result: Dict[str, Any], order: Optional[int] = None) -> None:
        context.store.record_output(self.name, self.kind, result, order)

    def conditional_passes(self, context: ActionContext) -> bool:
        """False when a conditional is configured but maps to an empty value."""
        raw = self.definition.conditional
        if is_empty(raw):
            return True
        return not is_empty(context.mapper.map_value(raw, context.values))

    def entity_data(self, context: ActionContext) -> Dict[str, Any]:
        return context.mapper.map_fields(self.definition.entity, context.values)

    # Lifecycle

    def load(self, context: ActionContext, order: Optional[int] = None) -> None:
        """Pre-populate mapped form fields. Most Actions have nothing to load."""
        return None

    def validate(self, context: ActionContext) -> bool:
        if not self.conditional_passes(context):
            logger.log_action(PHASE_VALIDATE, self.name, self.kind, "skipped")
            return True

        before = len(context.errors)
        self.validate_data(context)
        return len(context.errors) == before

    def validate_data(self, context: ActionContext) -> None:
        pass

    def make(self, context: ActionContext, order: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """Persist this Action and record its output.

        A skip hook veto records nothing. A failed conditional still records
        the base result so references to this Action resolve to "no entity".
        """
        if not context.hooks.allows(self.kind, self, context):
            logger.log_action(PHASE_MAKE, self.name, self.kind, "vetoed")
            return None

        result = self.base_result()

        if not self.conditional_passes(context):
            logger.log_action(PHASE_MAKE, self.name, self.kind, "skipped")
            self.record(context, result, order)
            return result

        try:
            result.update(self.make_data(context, order))
            logger.log_action(PHASE_MAKE, self.name, self.kind, "success")
        except CrmError as e:
            logger.log_persistence_failure(self.kind, e)

        self.record(context, result, order)
        return result

    def make_data(self, context: ActionContext, order: Optional[int] = None) -> Dict[str, Any]:
        raise NotImplementedError

    def reject(self, context: ActionContext, message: str) -> None:
        logger.log_validation_error(self.name, message)
        context.add_error(self.name, message)


class ContactAction(BaseAction):
    """Creates or updates a Contact and its declared Relationships."""

    kind = "contact"

    # Contact

    def contact_data(self, context: ActionContext) -> Dict[str, Any]:
        return context.mapper.map_fields(self.definition.contact, context.values)

    def email_data(self, context: ActionContext) -> List[Dict[str, Any]]:
        emails = []
        for mapping in self.definition.email:
            email = context.mapper.map_fields(mapping, context.values)
            if not is_empty(email.get("email")):
                emails.append(email)
        return emails

    @staticmethod
    def primary_email(emails: List[Dict[str, Any]]) -> Optional[str]:
        for email in emails:
            if email.get("is_primary"):
                return email["email"]
        return emails[0]["email"] if emails else None

    def submitter_contact_id(self, context: ActionContext) -> Optional[int]:
        if not self.settings.submitting_contact or not self.settings.autoload_enabled:
            return None
        return context.submitter_contact_id

    def contact_id_get(self, context: ActionContext, data: Dict[str, Any],
                       emails: List[Dict[str, Any]]) -> Optional[int]:
        """Contact id from the mapped id field, then dedupe, then the submitter."""
        if not is_empty(data.get("id")):
            return int(data["id"])

        if self.settings.dedupe_enabled:
            deduped = context.crm.find_duplicate_contact(prepare_data(data), emails)
            if deduped:
                return int(deduped)

        return self.submitter_contact_id(context)

    def relationship_specs(self, context: ActionContext):
        return build_relationship_specs(self.definition, context.mapper, context.values)

    @property
    def autoupdates(self) -> bool:
        return bool(self.settings.autoload_enabled and self.settings.autoupdate_enabled
                    and not self.settings.submitting_contact)

    # Load

    def load(self, context: ActionContext, order: Optional[int] = None) -> None:
        if not self.settings.autoload_enabled:
            return None

        contact_id = context.resolver.contact_id(self.name)

        if not contact_id:
            data = self.contact_data(context)
            if not is_empty(data.get("id")):
                contact_id = int(data["id"])

        if not contact_id:
            contact_id = self.submitter_contact_id(context)

        specs = self.relationship_specs(context)
        instructions = []
        if specs:
            instructions = load_relationships(context, self.definition, self.kind, order, specs, contact_id)
            if not contact_id:
                contact_id = contact_id_from_relationships(instructions)
                if contact_id:
                    # Candidates are now limited to links with this Contact
                    instructions = load_relationships(context, self.definition, self.kind, order, specs, contact_id)

        contact = context.crm.get_contact(contact_id) if contact_id else None
        if not contact:
            logger.log_action(PHASE_LOAD, self.name, self.kind, "not_found")
            return None

        for key, raw in self.definition.contact.items():
            context.populate(raw, contact.get(key))
        for mapping in self.definition.email:
            context.populate(mapping.get("email"), contact.get("email"))

        self.populate_relationships(context, instructions)

        result = self.base_result()
        result["contact"] = contact
        result["relationship"] = [i.relationship.to_dict() for i in instructions]
        self.record(context, result, order)
        logger.log_action(PHASE_LOAD, self.name, self.kind, "success", {"contact_id": contact["id"]})
        return None

    def populate_relationships(self, context: ActionContext, instructions) -> None:
        declarations = self.definition.relationship
        for instruction in instructions:
            if instruction.op != OP_UPDATE:
                continue
            declaration = declarations[instruction.spec.position]
            relationship = instruction.relationship
            for key, raw in declaration.fields.items():
                context.populate(raw, relationship.attributes.get(key))

            if context.crm.is_current_employer(relationship):
                context.populate(declaration.is_current_employee, 1)
                context.populate(declaration.is_current_employer, 1)

    # Validate

    def validate_data(self, context: ActionContext) -> None:
        data = self.contact_data(context)
        emails = self.email_data(context)

        if self.contact_id_get(context, data, emails):
            return

        if self.autoupdates:
            specs = self.relationship_specs(context)
            if any(not context.resolver.contact_id(spec.related_action_name) for spec in specs):
                # Related outputs are recorded during make, where the Contact is found through them
                logger.log_action(PHASE_VALIDATE, self.name, self.kind, "deferred")
                return
            instructions = load_relationships(context, self.definition, self.kind, None, specs)
            if contact_id_from_relationships(instructions):
                return

        if is_empty(data.get("contact_type")):
            self.reject(context, f'A Contact Type is required to create a Contact in "{self.name}".')
            return

        if not self.has_enough_data(data, emails):
            self.reject(context, f'Not enough data to save a Contact in "{self.name}".')

    def has_enough_data(self, data: Dict[str, Any], emails: List[Dict[str, Any]]) -> bool:
        """Display name, a full name for the Contact Type, or a primary email."""
        if not is_empty(data.get("display_name")):
            return True

        contact_type = data.get("contact_type")
        if contact_type == "Individual":
            if not is_empty(data.get("first_name")) and not is_empty(data.get("last_name")):
                return True
        elif contact_type == "Organization":
            if not is_empty(data.get("organization_name")):
                return True
        elif contact_type == "Household":
            if not is_empty(data.get("household_name")):
                return True

        return not is_empty(self.primary_email(emails))

    # Make

    def make_data(self, context: ActionContext, order: Optional[int] = None) -> Dict[str, Any]:
        data = self.contact_data(context)
        emails = self.email_data(context)
        contact_id = self.contact_id_get(context, data, emails)

        specs = self.relationship_specs(context)
        if not contact_id and self.autoupdates:
            loaded = load_relationships(context, self.definition, self.kind, order, specs)
            contact_id = contact_id_from_relationships(loaded)

        result: Dict[str, Any] = {}
        if contact_id:
            data["id"] = contact_id
            result["id"] = contact_id

        payload = prepare_data(data)
        primary = self.primary_email(emails)
        if primary and "email" not in payload:
            payload["email"] = primary

        contact = context.crm.save_contact(payload)
        result["contact"] = contact

        instructions = reconcile_relationships(context, self.definition, self.kind, order, contact["id"], specs)
        saved = save_relationships(context.crm, instructions)
        result["relationship"] = [r.to_dict() for r in saved]
        return result


class EntityAction(BaseAction):
    """An Action that saves one non-Contact entity and links it by reference.

    `references` maps an entity field to the name of the Action whose entity
    fills it. `contact_field` names the reference without which nothing is
    saved.
    """

    required_fields: Dict[str, str] = {}
    reference_kinds: Dict[str, str] = {}
    contact_field: str = "contact_id"

    def validate_data(self, context: ActionContext) -> None:
        # Referenced outputs only exist during make, so references are not checked here
        data = self.entity_data(context)
        for field_name, message in self.required_fields.items():
            if is_empty(data.get(field_name)):
                self.reject(context, message % self.name)
                return

    def resolve_references(self, context: ActionContext, data: Dict[str, Any]) -> Dict[str, Any]:
        for field_name, action_name in self.definition.references.items():
            kind = self.reference_kinds.get(field_name)
            if kind is None:
                logger.warning(f"Unknown reference field '{field_name}' on {self.kind} action '{self.name}'")
                continue

            entity_id = context.resolver.get_entity_id(action_name, kind)
            if entity_id is None:
                logger.log_reference_unresolved(self.name, action_name, kind)
                continue
            data[field_name] = entity_id
        return data

    def make_data(self, context: ActionContext, order: Optional[int] = None) -> Dict[str, Any]:
        data = self.resolve_references(context, self.entity_data(context))
        if is_empty(data.get(self.contact_field)):
            logger.log_action(PHASE_MAKE, self.name, self.kind, "skipped", {"missing": self.contact_field})
            return {}

        entity = context.crm.save_entity(self.kind, prepare_data(data))
        return {self.kind: entity}


class ActivityAction(EntityAction):
    kind = "activity"
    contact_field = "source_contact_id"
    required_fields = {
        "activity_type_id": 'An Activity Type ID is required to create an Activity in "%s".',
    }
    reference_kinds = {
        "source_contact_id": "contact",
        "target_contact_id": "contact",
        "assignee_contact_id": "contact",
        "case_id": "case",
    }


class CaseAction(EntityAction):
    kind = "case"
    required_fields = {
        "case_type_id": 'A Case Type ID is required to create a Case in "%s".',
    }
    reference_kinds = {
        "contact_id": "contact",
        "creator_id": "contact",
    }


class ParticipantAction(EntityAction):
    kind = "participant"
    required_fields = {
        "event_id": 'An Event ID is required to create a Participant in "%s".',
        "role_id": 'A Participant Role ID is required to create a Participant in "%s".',
    }
    reference_kinds = {
        "contact_id": "contact",
        "registered_by_id": "participant",
    }


ACTION_HANDLERS = {
    ContactAction.kind: ContactAction,
    ActivityAction.kind: ActivityAction,
    CaseAction.kind: CaseAction,
    ParticipantAction.kind: ParticipantAction,
}


def get_action_handler(definition: ActionDefinition) -> BaseAction:
    """Build the Action for a definition's kind."""
    handler = ACTION_HANDLERS.get(definition.kind)
    if handler is None:
        raise ValueError(f"Unknown action kind: {definition.kind}")
    return handler(definition)
