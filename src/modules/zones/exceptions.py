"""Delivery zone exceptions."""

from __future__ import annotations


class ZoneNotFound(Exception):
    """The requested delivery zone does not exist."""
