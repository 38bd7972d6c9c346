"""Exception types raised by nepdata.

Every failure is fatal for the current command: library code raises one
of these at the point of detection and :mod:`nepdata.cli` turns it into
a non-zero exit status.
"""

from __future__ import annotations


class NepDataError(Exception):
    """Base class for all nepdata errors."""


class MalformedInputError(NepDataError, ValueError):
    """Input text could not be decoded.

    Raised for unparseable numeric tokens, missing required header keys,
    headers beginning with a quote, atom lines whose column count does
    not match the ``Properties`` declaration, and truncated streams.
    """


class RangeViolationError(NepDataError, ValueError):
    """A decoded value lies outside its permitted range."""


class ResourceError(NepDataError, OSError):
    """A source or destination could not be opened."""
