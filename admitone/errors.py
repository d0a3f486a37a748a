class AdmitOneError(Exception):
    """Base class for faults surfaced by the ticket service."""


class PaymentNotCompleted(AdmitOneError):
    def __init__(self, reference: str, status: str):
        super().__init__(f"payment {reference} has status {status!r}")
        self.reference = reference
        self.status = status


class ConfirmationUnavailable(AdmitOneError):
    """The payment processor could not be reached or answered with an error."""


class StoreUnavailable(AdmitOneError):
    """The ticket store failed; the attempted operation was not applied."""


class InvalidStationToken(AdmitOneError):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
