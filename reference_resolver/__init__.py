"""Reference Resolver - attachment requirements for cost codes and accounts.

This package decides whether coding a card transaction against a reference
requires a receipt attachment, based on:
- Company-level cost-code templates matched by normalized code
- Type-tag preference when several templates share a code
- The chart account's own flag for account-coded transactions

Usage:
    from reference_resolver import ReferenceCatalog, ReferenceResolver

    catalog = ReferenceCatalog(company_id, cost_codes, accounts, associations)
    resolver = ReferenceResolver(catalog)
    resolver.requires_attachment_for_cost_code(tx.cost_code_id)
"""

from reference_resolver.models import (
    AttachmentRequirement,
    ReferenceLine,
    TieBreakPolicy,
)
from reference_resolver.normalize import normalize_code, normalize_type_tag
from reference_resolver.resolver import (
    ReferenceCatalog,
    ReferenceResolver,
    TemplateLookup,
    resolve_attachment_requirement,
)

__all__ = [
    # Models
    "AttachmentRequirement",
    "ReferenceLine",
    "TieBreakPolicy",
    # Normalization
    "normalize_code",
    "normalize_type_tag",
    # Resolver
    "ReferenceCatalog",
    "ReferenceResolver",
    "TemplateLookup",
    "resolve_attachment_requirement",
]
