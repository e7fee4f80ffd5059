"""Run-level and item-level error types.

Connection failures use the built-in ConnectionError.
"""

from __future__ import annotations


class AuthError(Exception):
    """The embedding backend credential exchange failed or returned no token."""


class CollectionError(Exception):
    """The photo collection could not be created or deleted."""


class ItemError(Exception):
    """A single image could not be checked or stored."""
