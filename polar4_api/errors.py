from __future__ import annotations


class Polar4Error(Exception):
    """Base error for the POLAR4 lookup service."""


class InputFormatError(Polar4Error):
    """Raised when a raw postcode fails the length or shape check."""


class NotFoundError(Polar4Error):
    """Raised when a well-formed postcode has no record."""

    def __init__(self, searched: str):
        super().__init__(f"Postcode not found: {searched!r}")
        self.searched = searched


class LoadError(Polar4Error):
    """Raised when the postcode source cannot be read at startup."""


class BackendFault(Polar4Error):
    """Raised when the external store fails to answer a lookup."""
