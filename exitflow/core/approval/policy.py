"""Approval policy constants, loaded from the workflow configuration."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ApprovalPolicy:
    """Tunable approval rules.

    dues_hard_block_threshold of None keeps pending dues advisory only;
    when set, dues strictly above it block approval.
    """

    override_min_justification_length: int = 50
    min_notice_days: int = 30
    min_reason_length: int = 10
    dues_hard_block_threshold: Optional[float] = None


DEFAULT_POLICY = ApprovalPolicy()
