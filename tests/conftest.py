"""
Shared fixtures - a fresh in-memory CRM and a Contact factory.
"""

import pytest

from formactions.core.crm import InMemoryCrmGateway


@pytest.fixture
def crm():
    """Create a fresh in-memory CRM for each test."""
    return InMemoryCrmGateway()


@pytest.fixture
def make_contact(crm):
    """Save an Individual and return its record."""
    def _make(first_name, last_name="Test", **extra):
        data = {"contact_type": "Individual", "first_name": first_name, "last_name": last_name}
        data.update(extra)
        return crm.save_contact(data)
    return _make
