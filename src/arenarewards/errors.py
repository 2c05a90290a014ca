"""
arenarewards/errors.py

Exception types raised by the scoring and reward engine.

Data-driven "no signal" outcomes (zero consensus, sparse vote history)
are never errors; only missing entities, bad state transitions, invalid
input and store failures raise.
"""

from typing import Any, Optional


class ArenaRewardsError(Exception):
    """Base class for arenarewards errors."""

    def __init__(
        self,
        message: str,
        operation: str = "",
        campaign_id: Optional[Any] = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.campaign_id = campaign_id


class NotFound(ArenaRewardsError):
    """A referenced campaign or match does not exist."""

    def __init__(self, entity: str, entity_id: Any, operation: str = ""):
        super().__init__(
            f"{entity} {entity_id} not found",
            operation=operation,
            campaign_id=entity_id if entity == "Campaign" else None,
        )
        self.entity = entity
        self.entity_id = entity_id


class InvalidState(ArenaRewardsError):
    """Campaign is not in the status the operation requires."""

    def __init__(self, campaign_id: Any, status: Any, operation: str = "close_campaign"):
        status_value = getattr(status, "value", status)
        super().__init__(
            f"Campaign {campaign_id} is not active (status: {status_value})",
            operation=operation,
            campaign_id=campaign_id,
        )
        self.status = status_value


class TransactionFailure(ArenaRewardsError):
    """
    The atomic store write could not complete.

    Nothing was committed, so the operation is safe to retry.
    """

    def __init__(
        self,
        operation: str,
        campaign_id: Optional[Any] = None,
        cause: Optional[BaseException] = None,
    ):
        target = f" for campaign {campaign_id}" if campaign_id is not None else ""
        reason = f": {cause}" if cause is not None else ""
        super().__init__(
            f"Transaction failed during {operation}{target}{reason}",
            operation=operation,
            campaign_id=campaign_id,
        )
        self.cause = cause


class StoreUnavailable(ArenaRewardsError):
    """A store read or single-row write failed outside a transaction."""

    def __init__(
        self,
        operation: str,
        campaign_id: Optional[Any] = None,
        cause: Optional[BaseException] = None,
    ):
        target = f" for campaign {campaign_id}" if campaign_id is not None else ""
        reason = f": {cause}" if cause is not None else ""
        super().__init__(
            f"Store failed during {operation}{target}{reason}",
            operation=operation,
            campaign_id=campaign_id,
        )
        self.cause = cause


class ValidationError(ArenaRewardsError):
    """Invalid input to a write operation."""

    def __init__(self, field: str, reason: str, operation: str = ""):
        super().__init__(f"Invalid {field}: {reason}", operation=operation)
        self.field = field
        self.reason = reason
