"""Reference Resolver Data Models.

This module defines the models used to decide whether a coding reference
requires a receipt attachment:
- AttachmentRequirement: Tri-state flag as stored on templates and accounts
- TieBreakPolicy: How competing templates for one code are chosen between
- ReferenceLine: The reference as seen from a transaction or distribution line
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AttachmentRequirement(str, Enum):
    """Tri-state attachment flag."""
    REQUIRED = "required"
    NOT_REQUIRED = "not_required"
    UNSPECIFIED = "unspecified"

    @classmethod
    def from_flag(cls, flag: Optional[bool]) -> "AttachmentRequirement":
        if flag is None:
            return cls.UNSPECIFIED
        return cls.REQUIRED if flag else cls.NOT_REQUIRED

    @property
    def flag(self) -> Optional[bool]:
        if self is AttachmentRequirement.UNSPECIFIED:
            return None
        return self is AttachmentRequirement.REQUIRED


class TieBreakPolicy(str, Enum):
    """Which template wins when several share a normalized code.

    An explicit "not required" anywhere always wins first; the policy only
    decides among the remaining flags.
    """
    TYPE_THEN_FIRST = "type_then_first"  # Same type tag first, then first match
    FIRST_MATCH = "first_match"          # Ignore type tags


class ReferenceLine(BaseModel):
    """A cost-code reference carried by a transaction or distribution line.

    Attributes:
        code: Cost code as displayed on the line
        type_tag: Cost type of the line's own cost code (e.g. "material")
        own_requirement: The line's own attachment flag
    """
    model_config = ConfigDict(frozen=True)

    code: Optional[str] = Field(default=None, description="Raw cost code")
    type_tag: Optional[str] = Field(default=None, description="Cost type tag")
    own_requirement: AttachmentRequirement = Field(default=AttachmentRequirement.UNSPECIFIED)
