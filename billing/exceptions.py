class BillingError(Exception):
    """A business rule rejected the request. The message is shown to the client."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class InvalidBillingPeriodError(BillingError):
    pass


class SubscriptionOverlapError(BillingError):
    pass


class SubscriptionLockedError(BillingError):
    """Payments already exist for the subscription's window."""


class DuplicateRecordError(BillingError):
    pass


class OutstandingPaymentsError(BillingError):
    """The customer still owes money, so the record has to stay."""
