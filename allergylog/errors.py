class AllergyLogError(Exception):
    """Base class for errors raised by the allergylog package."""


class InvalidFormat(AllergyLogError):
    """A backup document or synced payload does not carry a usable record list."""


class StorageUnavailable(AllergyLogError):
    """The persistence surface could not be read or written."""
