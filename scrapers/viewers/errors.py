"""Exceptions raised inside the viewer layer.

All of them are caught at the document boundary by the extraction pool
and turned into a failed ExtractionResult with the matching ErrorKind.
"""
from __future__ import annotations

from models import ErrorKind


class ViewerError(Exception):
    kind: ErrorKind = ErrorKind.EXTRACTION


class ViewerTimeout(ViewerError):
    """A navigation, wait or script exceeded its timeout."""

    kind = ErrorKind.TIMEOUT


class NavigationError(ViewerError):
    """The viewer URL could not be loaded."""

    kind = ErrorKind.NAVIGATION


class DetectionError(ViewerError):
    """The viewer matched no known structure. Terminal for the document."""

    kind = ErrorKind.DETECTION
