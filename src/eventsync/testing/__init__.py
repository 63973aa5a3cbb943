"""Test support utilities for the eventsync package.

Exports in-memory collaborators and migration helpers that are free of
pytest fixtures, so they can be imported from any test context.
"""

from __future__ import annotations
