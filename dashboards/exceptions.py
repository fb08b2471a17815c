"""
Errors raised by the analytics and reporting engine.

Validation errors (bad scope, bad range, bad cycle date) propagate to the
caller. Delivery failures and claim conflicts are caught per unit inside
scheduler and notification batches.
"""


class AnalyticsError(Exception):
    """Base class for analytics engine errors."""
    code = 'ANALYTICS_ERROR'


class InvalidCycleDate(AnalyticsError):
    """Raised when a date precedes the start of the cycle it is resolved against."""
    code = 'INVALID_CYCLE_DATE'

    def __init__(self, cycle_start, target_date):
        self.cycle_start = cycle_start
        self.target_date = target_date
        super().__init__(
            f"Date {target_date.isoformat()} is before the cycle start {cycle_start.isoformat()}"
        )


class InvalidScopeError(AnalyticsError):
    """Raised when a farm/shed/manager filter is unknown or belongs to another organization."""
    code = 'INVALID_SCOPE'

    def __init__(self, kind, scope_id):
        self.kind = kind
        self.scope_id = scope_id
        super().__init__(f"{kind.title()} {scope_id} was not found in this organization")


class RangeTooLargeError(AnalyticsError):
    """Raised when a requested date range exceeds the configured maximum."""
    code = 'RANGE_TOO_LARGE'

    def __init__(self, days, max_days):
        self.days = days
        self.max_days = max_days
        super().__init__(f"Date range of {days} days exceeds the maximum of {max_days} days")


class EmptyRangeError(AnalyticsError):
    """
    Raised when a range has no days or no records. Report compilation
    catches it and degrades to an empty report carrying the message as a note.
    """
    code = 'EMPTY_RANGE'


class DeliveryFailure(AnalyticsError):
    """Raised when a report or alert batch could not be delivered to any recipient."""
    code = 'DELIVERY_FAILURE'

    def __init__(self, message, failed_recipients=None):
        self.failed_recipients = failed_recipients or {}
        super().__init__(message)


class ClaimConflict(AnalyticsError):
    """Raised when a scheduled occurrence is already claimed by another run."""
    code = 'CLAIM_CONFLICT'
