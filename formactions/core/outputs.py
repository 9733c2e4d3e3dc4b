"""
Action output store and reference resolver.

Every Action in a form pass records what it produced under its name. Later
Actions refer to that output symbolically, by name, instead of holding a
pointer to the earlier Action. A store lives for exactly one load, validate
or submit pass and is never shared between requests.
"""

from typing import Any, Dict, List, Optional

from .schema import ActionOutput


class NotFound:
    """Falsy marker for a reference that has no output (yet)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "NOT_FOUND"


NOT_FOUND = NotFound()


class ActionOutputStore:
    """Per-pass map from Action name to the output that Action produced."""

    def __init__(self):
        self._outputs: Dict[str, ActionOutput] = {}

    def record_output(self, action_name: str, kind: str, data: Dict[str, Any], order: Optional[int] = None) -> None:
        """Store or overwrite the output for `action_name`."""
        if not action_name:
            raise ValueError("Action name is required to record an output")

        # Re-recording moves the entry to the end so iteration follows execution order
        self._outputs.pop(action_name, None)
        self._outputs[action_name] = ActionOutput(name=action_name, kind=kind, data=data, order=order)

    def get_output(self, action_name: str, kind: Optional[str] = None):
        """Return the stored data for `action_name`, or NOT_FOUND.

        When `kind` is given the stored output must have been recorded by an
        Action of that kind.
        """
        if not action_name:
            return NOT_FOUND

        output = self._outputs.get(action_name)
        if output is None:
            return NOT_FOUND
        if kind is not None and output.kind != kind:
            return NOT_FOUND

        return output.data

    def get(self, action_name: str) -> Optional[ActionOutput]:
        return self._outputs.get(action_name)

    def outputs(self, kind: Optional[str] = None) -> List[ActionOutput]:
        """All outputs in the order they were recorded, optionally filtered by kind."""
        return [o for o in self._outputs.values() if kind is None or o.kind == kind]

    def clear(self) -> None:
        self._outputs.clear()

    def __contains__(self, action_name: str) -> bool:
        return action_name in self._outputs

    def __len__(self) -> int:
        return len(self._outputs)


class ReferenceResolver:
    """Looks up the entity produced by a named Action."""

    def __init__(self, store: ActionOutputStore):
        self.store = store

    def get_entity(self, action_name: str, kind: str):
        """Return the `kind` entity the named Action produced, or NOT_FOUND.

        A missing Action, an Action of another kind, an Action skipped by its
        conditional and an Action that failed to persist all resolve the same
        way: there is no related entity.
        """
        data = self.store.get_output(action_name, kind)
        if not data:
            return NOT_FOUND

        entity = data.get(kind)
        if not entity:
            return NOT_FOUND

        return entity

    def get_entity_id(self, action_name: str, kind: str) -> Optional[int]:
        entity = self.get_entity(action_name, kind)
        if not entity or not entity.get("id"):
            return None
        return int(entity["id"])

    def contact_id(self, action_name: str) -> Optional[int]:
        return self.get_entity_id(action_name, "contact")

    def case_id(self, action_name: str) -> Optional[int]:
        return self.get_entity_id(action_name, "case")

    def participant_id(self, action_name: str) -> Optional[int]:
        return self.get_entity_id(action_name, "participant")
