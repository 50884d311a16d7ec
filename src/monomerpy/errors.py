from __future__ import annotations


class MonomerpyError(Exception):
    """Base class for errors that abort a monomerpy run."""


class ParseError(MonomerpyError, ValueError):
    """Structurally malformed input: a bad cigar, PAF line or numeric table field."""


class MissingDataError(MonomerpyError, RuntimeError):
    """Required data is absent (no periods given, empty monomer table)."""
