"""
Form definitions and request/response models.

Action settings are either literals or `{field:name}` tags that the engine
maps onto submitted values.
"""

import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ACTION_KINDS = ("contact", "activity", "case", "participant")
RELATIONSHIP_TYPE_PATTERN = re.compile(r"^[1-9][0-9]*_(ab|ba|equal)$")


class RelationshipDeclaration(BaseModel):
    """One row of a Contact Action's relationship repeater."""
    relationship_action_ref: str = ""
    relationship_type: str = ""
    fields: Dict[str, Any] = Field(default_factory=dict)
    is_current_employee: Any = None
    is_current_employer: Any = None

    @field_validator('relationship_type')
    @classmethod
    def relationship_type_must_be_token(cls, v):
        if v and not RELATIONSHIP_TYPE_PATTERN.match(v):
            raise ValueError('relationship_type must look like "{type_id}_ab", "{type_id}_ba" or "{type_id}_equal"')
        return v


class ActionSettings(BaseModel):
    autoload_enabled: bool = False
    autoupdate_enabled: bool = False
    submitting_contact: bool = False
    dedupe_enabled: bool = True


class ActionDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    kind: str
    conditional: Any = None
    settings: ActionSettings = Field(default_factory=ActionSettings)
    contact: Dict[str, Any] = Field(default_factory=dict)
    email: List[Dict[str, Any]] = Field(default_factory=list)
    relationship: List[RelationshipDeclaration] = Field(default_factory=list)
    entity: Dict[str, Any] = Field(default_factory=dict)
    references: Dict[str, str] = Field(default_factory=dict)

    @field_validator('name')
    @classmethod
    def name_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('name cannot be empty')
        return v.strip()

    @field_validator('kind')
    @classmethod
    def kind_must_be_valid(cls, v):
        if v not in ACTION_KINDS:
            raise ValueError(f'kind must be one of: {list(ACTION_KINDS)}')
        return v


class FormDefinition(BaseModel):
    name: str
    actions: List[ActionDefinition] = Field(default_factory=list)

    @field_validator('actions')
    @classmethod
    def action_names_must_be_unique(cls, v):
        seen = set()
        for action in v:
            if action.name in seen:
                raise ValueError(f'duplicate action name: {action.name}')
            seen.add(action.name)
        return v


class FormRequest(BaseModel):
    form: FormDefinition
    values: Dict[str, Any] = Field(default_factory=dict)
    submitter_contact_id: Optional[int] = None


class ValidationErrorItem(BaseModel):
    action: str
    message: str


class LoadResponse(BaseModel):
    values: Dict[str, Any]
    outputs: Dict[str, Dict[str, Any]]


class ValidateResponse(BaseModel):
    valid: bool
    errors: List[ValidationErrorItem]


class SubmitResponse(BaseModel):
    success: bool
    errors: List[ValidationErrorItem]
    outputs: Dict[str, Dict[str, Any]]


class RelationshipItem(BaseModel):
    id: int
    relationship_type_id: int
    contact_id_a: int
    contact_id_b: int
    is_current_employer: bool = False
    attributes: Dict[str, Any] = Field(default_factory=dict)


class RelationshipListResponse(BaseModel):
    contact_id: int
    relationships: List[RelationshipItem]


class HealthResponse(BaseModel):
    status: str
    version: str
    crm_provider: str
