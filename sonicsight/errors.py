"""Exceptions raised by the sonicsight package."""

from __future__ import annotations


class SonicSightError(Exception):
    """Base class for all sonicsight errors."""


class DecodeError(SonicSightError):
    """An encoded recording could not be decoded into samples."""


class InvalidInputError(SonicSightError, ValueError):
    """Input samples or a serialised signature are unusable."""


__all__ = ["SonicSightError", "DecodeError", "InvalidInputError"]
