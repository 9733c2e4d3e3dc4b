"""
Per-pass execution context threaded through every Action invocation.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .crm import ICrmGateway
from .mapping import TagMapper, is_empty
from .outputs import ActionOutputStore, ReferenceResolver
from .schema import FormValidationError

PHASE_LOAD = "load"
PHASE_VALIDATE = "validate"
PHASE_MAKE = "make"


class SkipHooks:
    """Callables that may veto an Action's make step.

    Hooks are registered for an Action kind or for a single Action name and
    receive `(action, context)`. Returning False skips the Action.
    """

    def __init__(self):
        self._by_kind: Dict[str, List[Callable]] = {}
        self._by_name: Dict[str, List[Callable]] = {}

    def register(self, hook: Callable, kind: Optional[str] = None, action_name: Optional[str] = None):
        if not callable(hook):
            raise ValueError(f"Skip hook must be callable: {hook}")
        if kind is None and action_name is None:
            raise ValueError("Skip hook needs a kind or an action name")

        if kind is not None:
            self._by_kind.setdefault(kind, []).append(hook)
        if action_name is not None:
            self._by_name.setdefault(action_name, []).append(hook)

    def allows(self, kind: str, action, context) -> bool:
        proceed = True
        hooks = self._by_kind.get(kind, []) + self._by_name.get(action.name, [])
        for hook in hooks:
            if hook(action, context) is False:
                proceed = False
        return proceed


@dataclass
class ActionContext:
    """State for one load, validate or submit pass."""
    crm: ICrmGateway
    phase: str = PHASE_MAKE
    store: ActionOutputStore = field(default_factory=ActionOutputStore)
    mapper: TagMapper = field(default_factory=TagMapper)
    values: Dict[str, Any] = field(default_factory=dict)
    submitter_contact_id: Optional[int] = None
    hooks: SkipHooks = field(default_factory=SkipHooks)
    errors: List[FormValidationError] = field(default_factory=list)
    populated: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.resolver = ReferenceResolver(self.store)

    def add_error(self, action_name: str, message: str) -> None:
        self.errors.append(FormValidationError(action_name=action_name, message=message))

    def populate(self, raw: Any, value: Any) -> None:
        """Pre-fill the form field a setting is mapped to (load phase)."""
        name = self.mapper.field_name(raw)
        if name is None or is_empty(value):
            return
        self.populated[name] = value
