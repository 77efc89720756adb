"""Exception hierarchy for quota enforcement."""


class QuotaError(Exception):
    """Base class for all quota errors."""


class StoreUnavailable(QuotaError):
    """The counter store could not be reached, timed out, or answered garbage."""


class InvalidConfiguration(QuotaError):
    """A window has no resolvable policy, or a policy value is invalid."""


class InvalidTenant(QuotaError):
    """Tenant identifier is empty or malformed."""
