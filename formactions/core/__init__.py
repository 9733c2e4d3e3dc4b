"""
Action output resolution and relationship reconciliation engine.
"""

# Package initialization for core module
from .outputs import ActionOutputStore, ReferenceResolver, NOT_FOUND
from .schema import Relationship, RelationshipSpec, RelationshipInstruction, ActionOutput, FormValidationError
from .crm import ICrmGateway, InMemoryCrmGateway, CrmError
from .engine import FormProcessor, SubmitResult, LoadResult

__all__ = [
    'ActionOutputStore',
    'ReferenceResolver',
    'NOT_FOUND',
    'Relationship',
    'RelationshipSpec',
    'RelationshipInstruction',
    'ActionOutput',
    'FormValidationError',
    'ICrmGateway',
    'InMemoryCrmGateway',
    'CrmError',
    'FormProcessor',
    'SubmitResult',
    'LoadResult'
]
