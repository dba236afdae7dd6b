"""
Contact Identity Reconciliation Module

Matches incoming email / phone signals against stored contacts, keeps every
cluster rooted at its oldest contact, and consolidates a cluster into the
identity summary served by the API.
"""

from .consolidator import consolidate
from .engine import ReconciliationEngine
from .matcher import find_candidates
from .resolver import ClusterResolver, ResolveOutcome
from .sql_store import SqlContactStore, SqlContactStoreProvider
from .store import ContactQuery, ContactStore, ContactStoreProvider
from .types import (
    Contact,
    ContactChanges,
    IdentifyRequest,
    IdentitySummary,
    LinkPrecedence,
    NewContact,
)
from .validation import (
    IdentifyInvalid,
    IdentifyValid,
    IdentifyValidation,
    validate_identify_payload,
)

__all__ = [
    "ReconciliationEngine",
    "ClusterResolver",
    "ResolveOutcome",
    "find_candidates",
    "consolidate",
    "ContactQuery",
    "ContactStore",
    "ContactStoreProvider",
    "SqlContactStore",
    "SqlContactStoreProvider",
    "Contact",
    "ContactChanges",
    "IdentifyRequest",
    "IdentitySummary",
    "LinkPrecedence",
    "NewContact",
    "IdentifyInvalid",
    "IdentifyValid",
    "IdentifyValidation",
    "validate_identify_payload",
]
