"""
Relationship resolution and reconciliation for Contact Actions.

A Contact Action may declare Relationships between its Contact and the
Contact produced by another, named Action. The CRM has no record of which
declaration created which Relationship, so the link is recomputed on every
pass:

1. Parse each declaration into a RelationshipSpec.
2. Discover existing Relationships of the declared type anchored at the
   related Contact.
3. For the Employer/Employee type with "is current" set, pick the record the
   CRM flags as current.
4. Otherwise index into the discovered list by offset: the number of
   same-type Relationships to the same related Contact already claimed by
   earlier same-kind Actions (and earlier declarations in this Action).
5. Update the matched record, or create a new one when nothing matched.
"""

from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .crm import CrmError, ICrmGateway
from .mapping import TagMapper, is_empty
from .outputs import ActionOutputStore
from .schema import (
    DIRECTION_AB,
    DIRECTION_BA,
    DIRECTION_EQUAL,
    DIRECTIONS,
    OP_CREATE,
    OP_UPDATE,
    Relationship,
    RelationshipInstruction,
    RelationshipSpec,
)
from ..util.logging import logger


# Parsing

def parse_relationship_type(token: Any) -> Optional[Tuple[int, str]]:
    """Split a `{type_id}_{ab|ba|equal}` token. Returns None when malformed."""
    if not isinstance(token, str) or "_" not in token:
        return None

    type_part, direction = token.strip().split("_", 1)
    if not type_part.isdigit() or direction not in DIRECTIONS:
        return None

    type_id = int(type_part)
    if type_id <= 0:
        return None

    return type_id, direction


def inverse_direction(direction: str) -> str:
    """Direction as seen from the related Contact."""
    if direction == DIRECTION_AB:
        return DIRECTION_BA
    if direction == DIRECTION_BA:
        return DIRECTION_AB
    return DIRECTION_EQUAL


def parse_relationship_spec(declaration, position: int, mapper: TagMapper,
                            values: Dict[str, Any]) -> Optional[RelationshipSpec]:
    """Normalize one relationship declaration, or None to skip it.

    A declaration without a related Action reference or without a
    relationship type contributes nothing; that is not a validation error.
    """
    action_ref = (declaration.relationship_action_ref or "").strip()
    if not action_ref:
        return None

    parsed = parse_relationship_type(declaration.relationship_type)
    if parsed is None:
        return None
    type_id, direction = parsed

    attributes = mapper.map_fields(declaration.fields, values)

    is_current_employee = _flag(mapper.map_value(declaration.is_current_employee, values))
    is_current_employer = _flag(mapper.map_value(declaration.is_current_employer, values))

    return RelationshipSpec(
        related_action_name=action_ref,
        relationship_type=declaration.relationship_type,
        relationship_type_id=type_id,
        direction=direction,
        inverse=inverse_direction(direction),
        attributes=attributes,
        is_current_employee=is_current_employee,
        is_current_employer=is_current_employer,
        position=position,
    )


def build_relationship_specs(action, mapper: TagMapper, values: Dict[str, Any]) -> List[RelationshipSpec]:
    """Parse every declaration of a Contact Action in authoring order."""
    if action.settings.submitting_contact:
        return []

    specs = []
    for position, declaration in enumerate(action.relationship or []):
        spec = parse_relationship_spec(declaration, position, mapper, values)
        if spec is not None:
            specs.append(spec)
    return specs


def _flag(value: Any) -> bool:
    if is_empty(value):
        return False
    if isinstance(value, str):
        return value.strip().lower() not in ("0", "false", "no", "off")
    return bool(value)


# Discovery

def discover_relationships(crm: ICrmGateway, related_contact_id: int, type_id: int, inverse: str) -> List[Relationship]:
    """Existing Relationships of `type_id` anchored at the related Contact, in CRM order."""
    return list(crm.find_relationships(related_contact_id, type_id, inverse))


# Offset disambiguation

def related_slot_matches(relationship: Relationship, related_contact_id: int, inverse: str) -> bool:
    """Whether the related Contact sits in the slot implied by `inverse`."""
    if inverse == DIRECTION_EQUAL:
        return relationship.involves(related_contact_id)
    if inverse == DIRECTION_AB:
        return relationship.contact_id_a == related_contact_id
    return relationship.contact_id_b == related_contact_id


def relationship_offset(prior: Iterable[Relationship], type_id: int, related_contact_id: int, inverse: str) -> int:
    """Count prior Relationships of the same type pointing at the same related Contact."""
    offset = 0
    for relationship in prior:
        if int(relationship.relationship_type_id) != int(type_id):
            continue
        if not related_slot_matches(relationship, related_contact_id, inverse):
            continue
        offset += 1
    return offset


def prior_relationships_for(store: ActionOutputStore, kind: str, action_name: str,
                            order: Optional[int] = None) -> List[Relationship]:
    """Relationships recorded by strictly-earlier Actions of the same kind.

    The Action's own entry is excluded by name so that an Action re-running
    within a pass never counts against itself.
    """
    prior = []
    for output in store.outputs(kind):
        if output.name == action_name:
            continue
        if order is not None and output.order is not None and output.order >= order:
            continue
        for item in output.data.get("relationship") or []:
            relationship = _as_relationship(item)
            if relationship is not None:
                prior.append(relationship)
    return prior


def select_by_offset(discovered: List[Relationship], offset: int) -> Optional[Relationship]:
    """The discovered record at `offset`, or None when past the end."""
    if 0 <= offset < len(discovered):
        return discovered[offset]
    return None


def select_current_employer(discovered: List[Relationship], spec: RelationshipSpec, crm: ICrmGateway,
                            employer_type_id: int) -> Optional[Relationship]:
    """The record flagged current, for an Employer/Employee declaration marked "is current"."""
    if spec.relationship_type_id != employer_type_id or not spec.is_current:
        return None

    for relationship in discovered:
        if crm.is_current_employer(relationship):
            return relationship
    return None


# Building records

def fill_relationship(existing: Relationship, spec: RelationshipSpec, employer_type_id: Optional[int] = None) -> Relationship:
    """Merge incoming attribute values onto a stored record; non-empty incoming values win."""
    attributes = dict(existing.attributes)
    for key, value in spec.attributes.items():
        if not is_empty(value) or key not in attributes:
            attributes[key] = value

    filled = Relationship(
        relationship_type_id=existing.relationship_type_id,
        contact_id_a=existing.contact_id_a,
        contact_id_b=existing.contact_id_b,
        id=existing.id,
        is_current_employer=existing.is_current_employer,
        attributes=attributes,
    )
    if employer_type_id is not None and spec.relationship_type_id == employer_type_id and spec.is_current:
        filled.is_current_employer = True
    return filled


def new_relationship(spec: RelationshipSpec, related_contact_id: int, contact_id: Optional[int] = None,
                     employer_type_id: Optional[int] = None) -> Relationship:
    """A Relationship to create, with the related Contact in the slot `inverse` implies.

    The saved Contact takes the other slot. For 'equal' types the related
    Contact is placed in B.
    """
    if spec.inverse == DIRECTION_AB:
        contact_id_a, contact_id_b = related_contact_id, contact_id
    else:
        contact_id_a, contact_id_b = contact_id, related_contact_id

    relationship = Relationship(
        relationship_type_id=spec.relationship_type_id,
        contact_id_a=contact_id_a,
        contact_id_b=contact_id_b,
        attributes={k: v for k, v in spec.attributes.items() if not is_empty(v)},
    )
    if employer_type_id is not None and spec.relationship_type_id == employer_type_id and spec.is_current:
        relationship.is_current_employer = True
    return relationship


def _as_relationship(item: Any) -> Optional[Relationship]:
    if isinstance(item, Relationship):
        return item
    if isinstance(item, dict) and item.get("relationship_type_id"):
        return Relationship.from_dict(item)
    return None


# Matching

def match_relationship(spec: RelationshipSpec, related_contact_id: int, discovered: List[Relationship],
                       prior: List[Relationship], claimed: Set[int], crm: ICrmGateway,
                       contact_id: Optional[int] = None,
                       overridden: Optional[Set[int]] = None) -> Tuple[Optional[Relationship], Optional[int]]:
    """Pick the discovered record that belongs to this declaration.

    `prior` holds the Relationships already claimed by earlier declarations,
    in this Action and in earlier same-kind Actions. With a known Contact only
    records linking it to the related Contact are candidates, and only prior
    claims involving that Contact count towards the offset.

    Records in `overridden` were taken by the Employer/Employee override. They
    sit outside the positional sequence: they are neither counted nor indexed.

    Returns `(record, offset)`. The record is None for create-new; the offset
    is None when the Employer/Employee override decided.
    """
    overridden = overridden or set()
    if contact_id:
        candidates = [r for r in discovered if r.other_contact_id(related_contact_id) == contact_id]
        counted = [r for r in prior if r.involves(contact_id)]
    else:
        candidates = discovered
        counted = prior

    unclaimed = [r for r in candidates if r.id not in claimed]
    current = select_current_employer(unclaimed, spec, crm, crm.employer_type_id())
    if current is not None:
        return current, None

    positional = [r for r in candidates if r.id not in overridden]
    counted = [r for r in counted if r.id not in overridden]
    offset = relationship_offset(counted, spec.relationship_type_id, related_contact_id, spec.inverse)
    match = select_by_offset(positional, offset)
    if match is not None and match.id in claimed:
        return None, offset
    return match, offset


# Load phase

def load_relationships(context, action, kind: str, order: Optional[int], specs: List[RelationshipSpec],
                       contact_id: Optional[int] = None) -> List[RelationshipInstruction]:
    """Resolve declarations against existing Relationships before anything is saved.

    Matched records come back as update instructions filled with incoming
    values. Unmatched declarations come back as create instructions with
    only the related Contact's slot set.
    """
    crm = context.crm
    employer_type_id = crm.employer_type_id()
    prior = prior_relationships_for(context.store, kind, action.name, order)
    claimed = {r.id for r in prior if r.id}
    overridden: Set[int] = set()

    instructions: List[RelationshipInstruction] = []
    for spec in specs:
        related_contact_id = context.resolver.contact_id(spec.related_action_name)
        if not related_contact_id:
            logger.log_reference_unresolved(action.name, spec.related_action_name, "contact")
            continue

        discovered = discover_relationships(crm, related_contact_id, spec.relationship_type_id, spec.inverse)
        already = prior + [i.relationship for i in instructions]
        match, offset = match_relationship(spec, related_contact_id, discovered, already, claimed, crm,
                                           contact_id, overridden)

        if match is not None:
            claimed.add(match.id)
            if offset is None:
                overridden.add(match.id)
            instruction = RelationshipInstruction(
                op=OP_UPDATE,
                relationship=fill_relationship(match, spec, employer_type_id),
                spec=spec,
                related_contact_id=related_contact_id,
                offset=offset,
            )
        else:
            instruction = RelationshipInstruction(
                op=OP_CREATE,
                relationship=new_relationship(spec, related_contact_id, contact_id, employer_type_id),
                spec=spec,
                related_contact_id=related_contact_id,
                offset=offset,
            )
        instructions.append(instruction)

    return instructions


def contact_id_from_relationships(instructions: List[RelationshipInstruction]) -> Optional[int]:
    """The Contact on the far side of the first matched existing Relationship."""
    for instruction in instructions:
        if instruction.op != OP_UPDATE or not instruction.relationship.id:
            continue
        other = instruction.relationship.other_contact_id(instruction.related_contact_id)
        if other:
            return int(other)
    return None


# Make phase

def reconcile_relationships(context, action, kind: str, order: Optional[int], contact_id: int,
                            specs: List[RelationshipSpec]) -> List[RelationshipInstruction]:
    """Decide update-vs-create for each declaration of a saved Contact."""
    if not contact_id:
        return []

    instructions = load_relationships(context, action, kind, order, specs, contact_id)

    for instruction in instructions:
        logger.log_relationship_instruction(
            action.name,
            instruction.op,
            instruction.spec.relationship_type_id,
            instruction.related_contact_id,
            relationship_id=instruction.relationship.id,
            offset=instruction.offset,
        )
    return instructions


def save_relationships(crm: ICrmGateway, instructions: List[RelationshipInstruction]) -> List[Relationship]:
    """Persist each instruction; a rejected write is logged and skipped."""
    saved = []
    for instruction in instructions:
        try:
            saved.append(crm.upsert_relationship(instruction.relationship))
        except CrmError as e:
            logger.log_persistence_failure("relationship", e, instruction.relationship.to_dict())
            continue
    return saved
