"""
CRM gateway - the read/write collaborator the engine persists against.

The engine decides which record to write and in what role; the gateway does
the writing. `InMemoryCrmGateway` keeps everything in process and backs the
tests, the HTTP surface and the CLI.
"""

from abc import ABC, abstractmethod
from copy import deepcopy
from typing import Any, Dict, List, Optional

from .config import get_employer_type_id
from .outputs import NOT_FOUND
from .schema import DIRECTION_AB, DIRECTION_BA, DIRECTION_EQUAL, Relationship


class CrmError(Exception):
    """Raised when the CRM rejects a write."""
    pass


class ICrmGateway(ABC):
    """Abstract interface for CRM reads and writes."""

    @abstractmethod
    def get_contact(self, contact_id: int):
        """Return the Contact dict, or NOT_FOUND."""
        pass

    @abstractmethod
    def save_contact(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create the Contact, or update it when `data` carries an id."""
        pass

    @abstractmethod
    def find_duplicate_contact(self, data: Dict[str, Any], emails: List[Dict[str, Any]]) -> Optional[int]:
        """Return the id of an existing Contact matching the submitted data."""
        pass

    @abstractmethod
    def find_relationships(self, related_contact_id: int, type_id: int, direction: str) -> List[Relationship]:
        """List Relationships of `type_id` anchored at the related Contact.

        `direction` is read from the related Contact's point of view: 'ab'
        means the related Contact is side A, 'ba' side B, 'equal' either.
        """
        pass

    @abstractmethod
    def get_relationship(self, relationship_id: int):
        """Return the Relationship, or NOT_FOUND."""
        pass

    @abstractmethod
    def upsert_relationship(self, relationship: Relationship) -> Relationship:
        """Create or update a Relationship and return the stored record."""
        pass

    @abstractmethod
    def is_current_employer(self, relationship: Relationship) -> bool:
        """Whether the record is the currently active employer/employee link."""
        pass

    @abstractmethod
    def save_entity(self, kind: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create or update a non-Contact entity (activity, case, participant)."""
        pass

    def employer_type_id(self) -> int:
        return get_employer_type_id()


class InMemoryCrmGateway(ICrmGateway):
    """Simple in-memory implementation of ICrmGateway."""

    def __init__(self):
        self._contacts: Dict[int, Dict[str, Any]] = {}
        self._relationships: Dict[int, Relationship] = {}  # insertion order = creation order
        self._entities: Dict[str, Dict[int, Dict[str, Any]]] = {}
        self._next_id = 1

    def _new_id(self) -> int:
        new_id = self._next_id
        self._next_id += 1
        return new_id

    # Contacts

    def get_contact(self, contact_id: int):
        if not contact_id:
            return NOT_FOUND
        contact = self._contacts.get(int(contact_id))
        return deepcopy(contact) if contact else NOT_FOUND

    def save_contact(self, data: Dict[str, Any]) -> Dict[str, Any]:
        data = dict(data)
        contact_id = data.get("id")
        if contact_id:
            contact_id = int(contact_id)
            if contact_id not in self._contacts:
                raise CrmError(f"Contact {contact_id} does not exist")
            self._contacts[contact_id].update(data)
            self._contacts[contact_id]["id"] = contact_id
            return deepcopy(self._contacts[contact_id])

        if not data.get("contact_type"):
            raise CrmError("Mandatory key(s) missing from params array: contact_type")

        data["id"] = self._new_id()
        if not data.get("display_name"):
            data["display_name"] = _display_name(data)
        self._contacts[data["id"]] = data
        return deepcopy(data)

    def find_duplicate_contact(self, data: Dict[str, Any], emails: List[Dict[str, Any]]) -> Optional[int]:
        addresses = {str(e.get("email", "")).strip().lower() for e in emails if e.get("email")}
        for contact in self._contacts.values():
            if data.get("contact_type") and contact.get("contact_type") != data.get("contact_type"):
                continue
            if addresses and str(contact.get("email", "")).strip().lower() in addresses:
                return contact["id"]
        return None

    # Relationships

    def find_relationships(self, related_contact_id: int, type_id: int, direction: str) -> List[Relationship]:
        results = []
        for relationship in self._relationships.values():
            if relationship.relationship_type_id != int(type_id):
                continue
            if direction == DIRECTION_AB and relationship.contact_id_a != related_contact_id:
                continue
            if direction == DIRECTION_BA and relationship.contact_id_b != related_contact_id:
                continue
            if direction == DIRECTION_EQUAL and not relationship.involves(related_contact_id):
                continue
            results.append(deepcopy(relationship))
        return results

    def get_relationship(self, relationship_id: int):
        relationship = self._relationships.get(int(relationship_id)) if relationship_id else None
        return deepcopy(relationship) if relationship else NOT_FOUND

    def upsert_relationship(self, relationship: Relationship) -> Relationship:
        if not relationship.contact_id_a or not relationship.contact_id_b:
            raise CrmError("Both contact_id_a and contact_id_b are required")
        for contact_id in (relationship.contact_id_a, relationship.contact_id_b):
            if int(contact_id) not in self._contacts:
                raise CrmError(f"Contact {contact_id} does not exist")
        if int(relationship.contact_id_a) == int(relationship.contact_id_b):
            raise CrmError("A Contact cannot be related to itself")

        stored = deepcopy(relationship)
        if stored.id:
            if stored.id not in self._relationships:
                raise CrmError(f"Relationship {stored.id} does not exist")
        else:
            stored.id = self._new_id()

        if stored.relationship_type_id == self.employer_type_id() and stored.is_current_employer:
            # Only one current employer per employee
            for other in self._relationships.values():
                if other.id != stored.id and other.relationship_type_id == stored.relationship_type_id \
                        and other.contact_id_a == stored.contact_id_a:
                    other.is_current_employer = False

        self._relationships[stored.id] = stored
        return deepcopy(stored)

    def is_current_employer(self, relationship: Relationship) -> bool:
        if relationship.relationship_type_id != self.employer_type_id():
            return False
        if relationship.attributes.get("is_active") in (0, "0", False):
            return False
        return bool(relationship.is_current_employer)

    def relationships_for_contact(self, contact_id: int) -> List[Relationship]:
        return [deepcopy(r) for r in self._relationships.values() if r.involves(contact_id)]

    def list_relationships(self) -> List[Relationship]:
        return [deepcopy(r) for r in self._relationships.values()]

    # Other entities

    def save_entity(self, kind: str, data: Dict[str, Any]) -> Dict[str, Any]:
        records = self._entities.setdefault(kind, {})
        data = dict(data)
        if data.get("id"):
            entity_id = int(data["id"])
            if entity_id not in records:
                raise CrmError(f"{kind} {entity_id} does not exist")
            records[entity_id].update(data)
            return deepcopy(records[entity_id])

        data["id"] = self._new_id()
        records[data["id"]] = data
        return deepcopy(data)

    def get_entity(self, kind: str, entity_id: int):
        record = self._entities.get(kind, {}).get(int(entity_id))
        return deepcopy(record) if record else NOT_FOUND


def _display_name(data: Dict[str, Any]) -> str:
    if data.get("contact_type") == "Organization":
        return data.get("organization_name", "")
    if data.get("contact_type") == "Household":
        return data.get("household_name", "")
    name = " ".join(p for p in (data.get("first_name"), data.get("last_name")) if p)
    return name or data.get("email", "")
