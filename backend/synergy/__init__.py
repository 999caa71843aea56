"""
Synergy Backend: Application Package
=====================================

What: Backend for the Synergy networking platform (users, startup projects,
      open roles, applications, team membership and notifications).
Who:  Imported by uvicorn (`synergy.main:app`), Alembic and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  <- HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (Business Logic)         │  <- role workflow, lifecycle,
    │                                     │     projects, notifications
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  <- SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  <- Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    The role workflow (`services/role_workflow.py`) is pure: it mutates a
    loaded project aggregate in memory and never touches the session.
    The lifecycle service owns loading, the version-checked commit, the
    cross-project sweep and notification dispatch.
"""

__version__ = "1.0.0"
