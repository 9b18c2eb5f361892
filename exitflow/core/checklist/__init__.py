"""Clearance checklist: item model, status engine and per-vertical templates."""
