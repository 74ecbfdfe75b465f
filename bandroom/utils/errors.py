class BandroomError(Exception):
    """Base error for Bandroom services."""


class UpstreamError(BandroomError):
    """Datastore, storage or messaging provider failure."""


class UnparseableResponseError(BandroomError):
    """A provider's text response could not be parsed as the expected JSON."""


class QuotaExceededError(BandroomError):
    """The completion API rejected the request for quota or billing reasons."""


class ServiceNotConfiguredError(BandroomError):
    """A required outbound provider has no credentials configured."""
