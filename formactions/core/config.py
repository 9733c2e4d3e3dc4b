"""
Runtime configuration - CRM backend selection and relationship-type constants.
"""

import os

# Read once at import; debug_enabled() re-reads the environment
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# CRM backend configuration
CRM_PROVIDER = os.getenv("CRM_PROVIDER", "memory")  # memory

# CiviCRM ships "Employee of" / "Employer of" as relationship type 5
EMPLOYER_RELATIONSHIP_TYPE_ID = int(os.getenv("EMPLOYER_RELATIONSHIP_TYPE_ID", "5"))

# HTTP surface for hosts that submit forms over the network
FORM_API_ENABLED = os.getenv("FORM_API_ENABLED", "true").lower() == "true"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Version string
VERSION = "0.9.0"

_crm_gateway = None


def get_crm_gateway():
    """Get the process-wide CRM gateway for the configured provider."""
    global _crm_gateway
    if _crm_gateway is not None:
        return _crm_gateway

    provider = os.getenv("CRM_PROVIDER", CRM_PROVIDER)
    if provider == "memory":
        from .crm import InMemoryCrmGateway
        _crm_gateway = InMemoryCrmGateway()
    else:
        raise ValueError(f"Unknown CRM_PROVIDER: {provider}")

    return _crm_gateway


def reset_crm_gateway():
    """Drop the cached gateway so the next call builds a fresh one."""
    global _crm_gateway
    _crm_gateway = None


def get_employer_type_id() -> int:
    """Get the relationship type id treated as Employer/Employee."""
    return int(os.getenv("EMPLOYER_RELATIONSHIP_TYPE_ID", str(EMPLOYER_RELATIONSHIP_TYPE_ID)))


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def is_form_api_enabled():
    """Check if the form HTTP endpoints are enabled."""
    return os.getenv("FORM_API_ENABLED", "true").lower() == "true"
