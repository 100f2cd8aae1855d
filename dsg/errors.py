"""Exception hierarchy shared by the history store, catalog client and CLI."""

from __future__ import annotations

from typing import Optional


class DsgError(Exception):
    """Base class for every error raised by dsg."""


class ConfigError(DsgError):
    """Invalid or incomplete configuration."""


class StorageError(DsgError):
    """The history database is unavailable or an I/O operation failed."""


class NotFoundError(DsgError, LookupError):
    """A lookup by id matched nothing."""


class TransportError(DsgError):
    """The catalog could not be reached (connection, DNS, timeout...)."""


class RemoteError(DsgError):
    """The catalog answered with a non-2xx status code."""

    def __init__(self, message: str, status_code: int, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class DecodeError(DsgError, ValueError):
    """A response or payload is not valid JSON of the expected shape."""


class MalformedPayloadError(DecodeError):
    """A payload is valid JSON but not an array where one is required."""


class BatchPostError(DsgError):
    """Posting a batch stopped at the first failing entity.

    Entities before ``index`` were already accepted by the catalog and are
    not rolled back; ``posted`` tells how many.
    """

    def __init__(self, index: int, posted: int, cause: DsgError):
        super().__init__(f"error posting entity {index + 1}: {cause}")
        self.index = index
        self.posted = posted
        self.cause = cause


class GenerationError(DsgError):
    """The language model call failed or returned nothing usable."""


class UnsupportedEntityTypeError(DsgError, ValueError):
    """An entity type dsg does not know how to decode."""

    def __init__(self, entity_type: str, supported: Optional[list] = None):
        supported = supported or []
        msg = f"unsupported entity type: {entity_type}"
        if supported:
            msg += f" (supported: {', '.join(supported)})"
        super().__init__(msg)
        self.entity_type = entity_type
