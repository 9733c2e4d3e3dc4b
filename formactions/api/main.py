"""
HTTP surface for hosts that load, validate and submit forms over the network.
"""

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .schemas import (
    FormRequest,
    HealthResponse,
    LoadResponse,
    RelationshipItem,
    RelationshipListResponse,
    SubmitResponse,
    ValidateResponse,
    ValidationErrorItem,
)
from ..core.config import CRM_PROVIDER, VERSION, debug_enabled, get_crm_gateway, is_form_api_enabled
from ..core.crm import CrmError
from ..core.engine import FormProcessor

# Initialize the FastAPI application
app = FastAPI(
    title="Form Actions API",
    version=VERSION,
    description="Form Action processing with relationship reconciliation against a CRM",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _processor() -> FormProcessor:
    if not is_form_api_enabled():
        raise HTTPException(status_code=404, detail="Form endpoints disabled")
    return FormProcessor(crm=get_crm_gateway())


def _error_items(errors):
    return [ValidationErrorItem(action=e.action_name, message=e.message) for e in errors]


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint():
    """Check system health."""
    try:
        get_crm_gateway()
        status = "healthy"
    except ValueError:
        status = "unhealthy"

    return HealthResponse(status=status, version=VERSION, crm_provider=CRM_PROVIDER)


@app.post("/forms/load", response_model=LoadResponse)
def load_form_endpoint(request: FormRequest):
    """Pre-populate form values from existing CRM data."""
    result = _processor().load(request.form, request.values, request.submitter_contact_id)
    return LoadResponse(values=result.values, outputs=result.outputs)


@app.post("/forms/validate", response_model=ValidateResponse)
def validate_form_endpoint(request: FormRequest):
    errors = _processor().validate(request.form, request.values, request.submitter_contact_id)
    return ValidateResponse(valid=not errors, errors=_error_items(errors))


@app.post("/forms/submit", response_model=SubmitResponse)
def submit_form_endpoint(request: FormRequest):
    """Validate and run every Action of the form."""
    try:
        result = _processor().submit(request.form, request.values, request.submitter_contact_id)
    except CrmError as e:
        raise HTTPException(status_code=500, detail=f"Submission failed: {str(e)}")

    return SubmitResponse(success=result.success, errors=_error_items(result.errors), outputs=result.outputs)


@app.get("/contacts/{contact_id}/relationships", response_model=RelationshipListResponse)
def contact_relationships_endpoint(contact_id: int):
    """Relationships stored for a Contact (only available in DEBUG mode)."""
    if not debug_enabled():
        raise HTTPException(status_code=403, detail="Relationship listing requires debug mode")

    crm = get_crm_gateway()
    if not crm.get_contact(contact_id):
        raise HTTPException(status_code=404, detail="Contact not found")

    relationships = [
        RelationshipItem(
            id=r.id,
            relationship_type_id=r.relationship_type_id,
            contact_id_a=r.contact_id_a,
            contact_id_b=r.contact_id_b,
            is_current_employer=r.is_current_employer,
            attributes=r.attributes,
        )
        for r in crm.relationships_for_contact(contact_id)
    ]
    return RelationshipListResponse(contact_id=contact_id, relationships=relationships)
