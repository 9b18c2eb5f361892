"""Approval gate: financial summary, blocker resolution and the approval/override authority."""
