"""
Reference Resolver Tests

Validates attachment-requirement resolution:
1. Cost code normalization
2. "Any explicit not-required wins" precedence
3. Type-tag tie-breaking between templates sharing a code
4. Fail-safe default to "required" for unknown references
"""

import pytest
from pydantic import ValidationError

from models.cards import (
    AccountAssociation,
    AssociationType,
    ChartAccount,
    CostCodeTemplate,
)
from reference_resolver import (
    AttachmentRequirement,
    ReferenceCatalog,
    ReferenceLine,
    ReferenceResolver,
    TemplateLookup,
    TieBreakPolicy,
    normalize_code,
    resolve_attachment_requirement,
)


COMPANY = "co-1"


def template(id, code, require=None, type_tag=None, job_id=None, chart_account_id=None):
    return CostCodeTemplate(
        id=id,
        company_id=COMPANY,
        code=code,
        job_id=job_id,
        type_tag=type_tag,
        require_attachment=require,
        chart_account_id=chart_account_id,
    )


def line(code, own=None, type_tag=None):
    return ReferenceLine(
        code=code,
        type_tag=type_tag,
        own_requirement=AttachmentRequirement.from_flag(own),
    )


class TestNormalizeCode:
    """Cost code normalization."""

    def test_strips_whitespace_and_case(self):
        assert normalize_code(" 01.100 ") == "01.100"

    def test_drops_non_code_characters(self):
        assert normalize_code("02 - 200") == "02200"
        assert normalize_code("1.100 Labor") == "1.100"

    def test_none_and_text_only(self):
        assert normalize_code(None) == ""
        assert normalize_code("Labor") == ""


class TestResolveAttachmentRequirement:
    """Precedence rules of resolve_attachment_requirement."""

    def test_no_match_defaults_to_required(self):
        """Unmatched line with no flag of its own requires an attachment."""
        assert resolve_attachment_requirement(line("99.999"), TemplateLookup([])) is True

    def test_no_match_uses_line_flag(self):
        assert resolve_attachment_requirement(line("99.999", own=True), TemplateLookup([])) is True
        assert resolve_attachment_requirement(line("99.999", own=False), TemplateLookup([])) is False

    def test_any_matching_not_required_wins_over_unset_line_flag(self):
        """A template explicitly not-required wins even though the line is unset."""
        lookup = TemplateLookup([
            template("t1", "01-100", require=True, type_tag="labor"),
            template("t2", "01100", require=False, type_tag="material"),
        ])
        assert resolve_attachment_requirement(line("01-100", type_tag="labor"), lookup) is False

    def test_line_not_required_wins_over_required_template(self):
        lookup = TemplateLookup([template("t1", "01100", require=True)])
        assert resolve_attachment_requirement(line("01100", own=False), lookup) is False

    def test_type_tag_match_supplies_flag(self):
        lookup = TemplateLookup([
            template("t1", "5.000", require=None, type_tag="material"),
            template("t2", "5.000", require=True, type_tag="labor"),
        ])
        assert resolve_attachment_requirement(line("5.000", type_tag="Labor"), lookup) is True

    def test_unflagged_matches_fall_back_to_line_then_default(self):
        lookup = TemplateLookup([template("t1", "6.000", require=None)])
        assert resolve_attachment_requirement(line("6.000"), lookup) is True
        assert resolve_attachment_requirement(line("6.000", own=False), lookup) is False

    def test_first_match_used_when_no_type_matches(self):
        lookup = TemplateLookup([
            template("t1", "7.100", require=True, type_tag="labor"),
            template("t2", "7.100", require=True, type_tag="material"),
        ])
        assert resolve_attachment_requirement(line("7.100", type_tag="equipment"), lookup) is True

    def test_first_match_policy_ignores_type(self):
        lookup = TemplateLookup([
            template("t1", "8.000", require=True, type_tag="labor"),
        ])
        result = resolve_attachment_requirement(
            line("8.000", type_tag="material"),
            lookup,
            TieBreakPolicy.FIRST_MATCH,
        )
        assert result is True

    def test_empty_code_never_matches(self):
        lookup = TemplateLookup([template("t1", "Labor", require=False)])
        assert lookup.matches("Materials") == []
        assert resolve_attachment_requirement(line("Materials"), lookup) is True

    def test_reference_line_is_frozen(self):
        ref = line("01-100", own=False)
        with pytest.raises(ValidationError):
            ref.code = "02-200"
        assert ref.code == "01-100"


class TestReferenceResolver:
    """Resolver over a company catalog."""

    @pytest.fixture
    def catalog(self):
        return ReferenceCatalog(
            COMPANY,
            cost_codes=[
                template("cc-company", "01100", require=False, type_tag="labor"),
                template("cc-job", "01-100", require=None, type_tag="labor", job_id="job-1"),
                template("cc-required", "02200", require=True),
            ],
            accounts=[
                ChartAccount(id="acct-open", company_id=COMPANY, account_number="6000",
                             account_name="Supplies", require_attachment=False),
                ChartAccount(id="acct-unset", company_id=COMPANY, account_number="6100",
                             account_name="Meals"),
            ],
            associations=[
                AccountAssociation(company_id=COMPANY, account_id="acct-open",
                                   association_type=AssociationType.JOB_EXPENSE, job_id="job-1"),
            ],
        )

    def test_job_cost_code_inherits_company_not_required(self, catalog):
        """Job copy without a flag inherits the company template's not-required."""
        resolver = ReferenceResolver(catalog)
        assert resolver.requires_attachment_for_cost_code("cc-job") is False

    def test_required_cost_code(self, catalog):
        assert ReferenceResolver(catalog).requires_attachment_for_cost_code("cc-required") is True

    def test_unknown_cost_code_requires_attachment(self, catalog):
        resolver = ReferenceResolver(catalog)
        assert resolver.requires_attachment_for_cost_code("deleted") is True
        assert resolver.requires_attachment_for_cost_code(None) is True

    def test_account_flags(self, catalog):
        resolver = ReferenceResolver(catalog)
        assert resolver.requires_attachment_for_account("acct-open") is False
        assert resolver.requires_attachment_for_account("acct-unset") is True
        assert resolver.requires_attachment_for_account("missing") is True

    def test_company_templates_exclude_job_copies(self, catalog):
        assert len(catalog.company_templates) == 2
        assert catalog.job_expense_account("job-1") == "acct-open"
        assert catalog.job_expense_account("job-2") is None
