"""Reference Resolver Algorithm.

Decides whether coding a transaction against a given cost code or chart
account requires a receipt attachment.

Cost codes exist at two levels: company-level templates and job-specific
copies of them. A job cost code is matched to its company templates by
normalized code. The decision rules, in order:
1. Any explicit "not required" on a matching template or on the line
   itself wins, and the result is False
2. Among the matches, a template with the line's type tag supplies the flag
3. Otherwise the first matching template supplies the flag
4. Otherwise the line's own flag applies
5. Otherwise the reference requires an attachment

Anything unknown (a deleted cost code, a missing account) resolves to
"required"; the resolver never raises.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from models.cards import (
    AccountAssociation,
    AssociationType,
    ChartAccount,
    CostCodeTemplate,
)
from reference_resolver.models import (
    AttachmentRequirement,
    ReferenceLine,
    TieBreakPolicy,
)
from reference_resolver.normalize import normalize_code, normalize_type_tag


class TemplateLookup:
    """Company-level cost-code templates keyed by normalized code.

    Built once per company; each bucket keeps the templates in the order
    they were supplied so "first match" is stable.
    """

    def __init__(self, templates: Iterable[CostCodeTemplate] = ()):
        self._by_code: Dict[str, List[CostCodeTemplate]] = defaultdict(list)
        for template in templates:
            self._by_code[normalize_code(template.code)].append(template)

    def matches(self, code) -> List[CostCodeTemplate]:
        """Templates sharing the normalized form of ``code``."""
        key = normalize_code(code)
        if not key:
            return []
        return list(self._by_code.get(key, ()))

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._by_code.values())


def resolve_attachment_requirement(
    line: ReferenceLine,
    lookup: TemplateLookup,
    policy: TieBreakPolicy = TieBreakPolicy.TYPE_THEN_FIRST,
) -> bool:
    """Decide whether a reference line requires an attachment.

    Args:
        line: The reference as seen from the transaction or distribution line
        lookup: Company-level templates keyed by normalized code
        policy: Tie-break between templates sharing a code

    Returns:
        True if an attachment is required

    Examples:
        A job cost code "01-100" with no flag, matched to a company template
        "01100" flagged not-required, resolves to False.
    """
    matches = lookup.matches(line.code)
    own = line.own_requirement

    # Any explicit "not required" wins
    if own is AttachmentRequirement.NOT_REQUIRED:
        return False
    if any(t.require_attachment is False for t in matches):
        return False

    if policy is TieBreakPolicy.TYPE_THEN_FIRST and line.type_tag:
        wanted = normalize_type_tag(line.type_tag)
        for template in matches:
            if normalize_type_tag(template.type_tag) == wanted:
                if template.require_attachment is not None:
                    return template.require_attachment
                break

    if matches and matches[0].require_attachment is not None:
        return matches[0].require_attachment

    if own.flag is not None:
        return own.flag

    return True


class ReferenceCatalog:
    """A company's reference data indexed for coding and posting decisions.

    Holds every cost code (company-level and job-specific), the chart of
    accounts, and the account associations that map jobs and cost codes
    to expense accounts.
    """

    def __init__(
        self,
        company_id: str,
        cost_codes: Iterable[CostCodeTemplate] = (),
        accounts: Iterable[ChartAccount] = (),
        associations: Iterable[AccountAssociation] = (),
    ):
        self.company_id = company_id
        self.cost_codes: Dict[str, CostCodeTemplate] = {c.id: c for c in cost_codes}
        self.accounts: Dict[str, ChartAccount] = {a.id: a for a in accounts}
        self.associations: List[AccountAssociation] = list(associations)
        self.company_templates = TemplateLookup(
            c for c in self.cost_codes.values() if c.job_id is None
        )

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def cost_code(self, cost_code_id: Optional[str]) -> Optional[CostCodeTemplate]:
        if not cost_code_id:
            return None
        return self.cost_codes.get(cost_code_id)

    def account(self, account_id: Optional[str]) -> Optional[ChartAccount]:
        if not account_id:
            return None
        return self.accounts.get(account_id)

    def cost_code_line(self, cost_code_id: Optional[str]) -> Optional[ReferenceLine]:
        """The reference line for a cost code, or None if it is unknown."""
        template = self.cost_code(cost_code_id)
        if template is None:
            return None
        return ReferenceLine(
            code=template.code,
            type_tag=template.type_tag,
            own_requirement=AttachmentRequirement.from_flag(template.require_attachment),
        )

    def job_expense_account(self, job_id: Optional[str]) -> Optional[str]:
        """Expense account associated with a job, if one is configured."""
        if not job_id:
            return None
        for assoc in self.associations:
            if assoc.job_id == job_id and assoc.association_type == AssociationType.JOB_EXPENSE:
                return assoc.account_id
        return None

    def cost_code_association_account(self, cost_code_id: Optional[str]) -> Optional[str]:
        """Account from an association record naming this cost code."""
        if not cost_code_id:
            return None
        for assoc in self.associations:
            if assoc.cost_code_id == cost_code_id:
                return assoc.account_id
        return None


class ReferenceResolver:
    """Attachment-requirement decisions against one company's catalog.

    Example:
        resolver = ReferenceResolver(catalog)
        if resolver.requires_attachment_for_cost_code(tx.cost_code_id):
            ...
    """

    def __init__(
        self,
        catalog: ReferenceCatalog,
        policy: TieBreakPolicy = TieBreakPolicy.TYPE_THEN_FIRST,
    ):
        self.catalog = catalog
        self.policy = policy

    def resolve(self, line: ReferenceLine) -> bool:
        return resolve_attachment_requirement(line, self.catalog.company_templates, self.policy)

    def requires_attachment_for_cost_code(self, cost_code_id: Optional[str]) -> bool:
        """Unknown or deleted cost codes require an attachment."""
        line = self.catalog.cost_code_line(cost_code_id)
        if line is None:
            return True
        return self.resolve(line)

    def requires_attachment_for_account(self, account_id: Optional[str]) -> bool:
        """Chart accounts carry their own flag; unset or unknown means required."""
        account = self.catalog.account(account_id)
        if account is None or account.require_attachment is None:
            return True
        return account.require_attachment
