"""
Exceptions raised by the reconciliation engine
"""


class ReconciliationError(Exception):
    """Base class for reconciliation failures"""


class SyncConfigurationError(ReconciliationError):
    """
    Schedule and provider disagree (or the provider is not configured).

    Raised for a bulk record without an id, a bulk id that no internal game
    carries, or a missing API key. Aborts the run; fix out-of-band, e.g. with
    ``manage.py sync backfill-ids``.
    """


class ProviderError(ReconciliationError):
    """The Football Data API bulk request failed"""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class ReconciliationInProgressError(ReconciliationError):
    """Another run currently holds the reconciliation lease"""
