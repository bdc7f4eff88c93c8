"""Shared type definitions for stackbuild.

This module contains enums shared across subpackages to avoid circular
imports.
"""

from enum import Enum


class ServiceOutcome(str, Enum):
    """Terminal state of a service in a build run."""

    BUILT = "built"
    TAGGED = "tagged"
    PULLED = "pulled"


__all__ = ["ServiceOutcome"]
