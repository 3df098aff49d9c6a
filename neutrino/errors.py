"""Exceptions raised throughout the package."""

from __future__ import annotations


class NeutrinoError(Exception):
    """Base class for every error raised by this package."""

    default_message = "neutrino error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message if message is not None else self.default_message)


class GetUtxoCancelledError(NeutrinoError):
    """A UTXO lookup request was cancelled."""

    default_message = "get utxo request cancelled"


class ShuttingDownError(NeutrinoError):
    """The service received a shutdown request."""

    default_message = "neutrino shutting down"


class ElementNotFoundError(NeutrinoError, LookupError):
    """An element is not present in a cache."""

    default_message = "unable to find element"


class FilterNotFoundError(NeutrinoError, LookupError):
    """No filter is stored for the requested block hash."""

    default_message = "unable to find filter"


class HeightNotFoundError(NeutrinoError, LookupError):
    """A height is not present in a header index."""

    default_message = "target height not found in index"


class HashNotFoundError(NeutrinoError, LookupError):
    """A block hash is not present in a header index."""

    default_message = "target hash not found in index"


class HeaderNotFoundError(NeutrinoError, LookupError):
    """A header could not be read from its flat file."""

    default_message = "header not found on disk"


class CheckpointMismatchError(NeutrinoError):
    """A filter header does not match a known checkpoint."""

    default_message = "checkpoint doesn't match"


class BucketExistsError(NeutrinoError):
    """A bucket that was to be created already exists."""

    default_message = "bucket already exists"