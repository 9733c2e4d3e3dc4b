"""
Core records shared by the output store, the relationship engine and the CRM gateway.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

DIRECTION_AB = "ab"
DIRECTION_BA = "ba"
DIRECTION_EQUAL = "equal"
DIRECTIONS = (DIRECTION_AB, DIRECTION_BA, DIRECTION_EQUAL)

OP_UPDATE = "update"
OP_CREATE = "create"


@dataclass
class Relationship:
    """A Relationship record as known to the CRM."""
    relationship_type_id: int
    contact_id_a: Optional[int] = None
    contact_id_b: Optional[int] = None
    id: Optional[int] = None
    is_current_employer: bool = False
    attributes: Dict[str, Any] = field(default_factory=dict)

    def other_contact_id(self, contact_id: int) -> Optional[int]:
        """Return the Contact on the side that is not `contact_id`."""
        if self.contact_id_a is not None and int(self.contact_id_a) == int(contact_id):
            return self.contact_id_b
        return self.contact_id_a

    def involves(self, contact_id: int) -> bool:
        return contact_id is not None and contact_id in (self.contact_id_a, self.contact_id_b)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.attributes)
        data.update({
            "id": self.id,
            "contact_id_a": self.contact_id_a,
            "contact_id_b": self.contact_id_b,
            "relationship_type_id": self.relationship_type_id,
            "is_current_employer": self.is_current_employer,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Relationship":
        core = {"id", "contact_id_a", "contact_id_b", "relationship_type_id", "is_current_employer"}
        return cls(
            relationship_type_id=int(data["relationship_type_id"]),
            contact_id_a=_maybe_int(data.get("contact_id_a")),
            contact_id_b=_maybe_int(data.get("contact_id_b")),
            id=_maybe_int(data.get("id")),
            is_current_employer=bool(data.get("is_current_employer", False)),
            attributes={k: v for k, v in data.items() if k not in core},
        )


@dataclass
class RelationshipSpec:
    """One normalized relationship declaration inside a Contact Action."""
    related_action_name: str
    relationship_type: str  # raw "{type_id}_{direction}" token
    relationship_type_id: int
    direction: str
    inverse: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    is_current_employee: bool = False
    is_current_employer: bool = False
    position: int = 0  # index among the Action's declarations

    def __post_init__(self):
        if self.direction not in DIRECTIONS:
            raise ValueError(f"Invalid relationship direction: {self.direction}")
        expected = {DIRECTION_AB: DIRECTION_BA, DIRECTION_BA: DIRECTION_AB}.get(self.direction, DIRECTION_EQUAL)
        if self.inverse != expected:
            raise ValueError(f"Inverse '{self.inverse}' does not complement direction '{self.direction}'")

    @property
    def is_current(self) -> bool:
        return bool(self.is_current_employee or self.is_current_employer)


@dataclass
class RelationshipInstruction:
    """An update or create decision handed to the persistence collaborator."""
    op: str  # 'update', 'create'
    relationship: Relationship
    spec: RelationshipSpec
    related_contact_id: int
    offset: Optional[int] = None


@dataclass
class ActionOutput:
    """The data an Action produced, keyed by Action name in the output store."""
    name: str
    kind: str
    data: Dict[str, Any]
    order: Optional[int] = None


@dataclass
class FormValidationError:
    """A user-visible validation failure attached to one Action."""
    action_name: str
    message: str


def _maybe_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)
