"""Exception hierarchy shared by the ingestion and cleanup jobs."""


class StudentHomeError(Exception):
    """Base class for errors raised by this package."""


class ConfigurationError(StudentHomeError):
    """Required configuration is missing or invalid. Fatal at startup."""


class NormalizationError(StudentHomeError):
    """A raw listing cannot be turned into a Property (e.g. it has no title)."""


class StoreError(StudentHomeError):
    """A call to the property store failed."""
