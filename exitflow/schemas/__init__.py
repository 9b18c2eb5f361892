"""Pydantic schemas for the exit workflow data contract (camelCase on the wire)."""

from .common import CamelModel, ErrorResponse
from .dashboard import (
    DashboardFiltersSchema,
    DashboardStatsSchema,
    DashboardViewSchema,
    ExitRequestSummarySchema,
)
from .exit_request import (
    AuditEntrySchema,
    CertificateSchema,
    ChecklistSchema,
    ExitApprovalDataSchema,
    ExitRequestDraftSchema,
)

__all__ = [
    "CamelModel",
    "ErrorResponse",
    "DashboardFiltersSchema",
    "DashboardStatsSchema",
    "DashboardViewSchema",
    "ExitRequestSummarySchema",
    "AuditEntrySchema",
    "CertificateSchema",
    "ChecklistSchema",
    "ExitApprovalDataSchema",
    "ExitRequestDraftSchema",
]
