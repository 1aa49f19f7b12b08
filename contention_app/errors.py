"""
Exception types raised by the contention engine.

Only configuration problems are raised as exceptions.  Everything that
goes wrong while a request is in flight (transport failures, undecodable
bodies, expected duplicate conflicts) is folded into a
:class:`~contention_app.models.RequestOutcome` instead, so that one bad
response never takes down a virtual user or the run.
"""

from __future__ import annotations


class ContentionError(Exception):
    """Base class for errors raised by the load harness."""


class ConfigurationError(ContentionError):
    """
    Setup-time configuration is missing or invalid.

    Raised before any virtual user starts (missing signing secret, empty
    identity pool, non-positive resource ranges, unknown scenario names,
    unreadable threshold files).  The run must abort when this is raised.
    """
