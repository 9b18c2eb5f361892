"""Core workflow logic: state machine, checklist, approval and dashboard."""
