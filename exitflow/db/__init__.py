"""Persistence collaborator: SQLAlchemy models, sessions and repositories."""
