"""
Core Base Module

Shared building blocks for the SCSE apps.

Exports:
    - TimestampMixin: Adds created_at, updated_at (core.base.models)
    - Domain exceptions: StateConflict, ReferentialConflict and the
      AuthenticationError family (core.base.exceptions)
    - Test fixtures (core.base.test_utils)
"""
