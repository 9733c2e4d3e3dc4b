"""
Form Actions - configurable form Actions that write Contacts, Relationships
and related entities to a CRM.
"""

from .core.config import VERSION

__version__ = VERSION
