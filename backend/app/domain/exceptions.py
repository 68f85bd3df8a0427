"""
Dialer Domain Exceptions
Error taxonomy shared by the disposition, queue and pool services
"""


class DialerError(Exception):
    """Base class for dialer domain errors."""


class NotFoundError(DialerError):
    """A lead or pool entry id did not resolve."""


class InvalidArgumentError(DialerError):
    """Missing or out-of-vocabulary input."""


class ConflictError(DialerError):
    """Duplicate phone number on pool add."""


class UpstreamUnavailableError(DialerError):
    """An optional collaborator (annotator, pool counters) failed."""


class StaleLeadError(DialerError):
    """
    The lead changed between read and write.

    Raised by stores when the compare-and-set on attempt_count misses;
    the disposition engine retries from a fresh read.
    """
