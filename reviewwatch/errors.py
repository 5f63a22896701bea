"""Error taxonomy for the ingestion and alerting pipeline.

Failures are isolated at the smallest unit that can absorb them:
  - ValidationError: one malformed review item (batch continues)
  - ConnectorError: one place's fetch (run continues with other places)
  - NotificationError: one alert row's send (recorded on that row)
  - PersistenceError: storage failure, fatal to the current tenant run
"""


class ReviewWatchError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(ReviewWatchError):
    def __init__(self, message: str, index: int | None = None):
        super().__init__(message)
        self.message = message
        self.index = index


class ConnectorError(ReviewWatchError):
    def __init__(self, place_id: str, message: str):
        super().__init__(f"{place_id}: {message}")
        self.place_id = place_id
        self.message = message


class PersistenceError(ReviewWatchError):
    """Storage failure with the stage and tenant/place it happened in."""

    def __init__(self, stage: str, tenant_id: str, place_id: str | None = None, cause: Exception | None = None):
        where = f"tenant={tenant_id}" + (f" place={place_id}" if place_id else "")
        reason = f": {cause}" if cause is not None else ""
        super().__init__(f"Persistence failure at {stage} ({where}){reason}")
        self.stage = stage
        self.tenant_id = tenant_id
        self.place_id = place_id
        self.cause = cause

    def to_dict(self) -> dict:
        return {"stage": self.stage, "tenant_id": self.tenant_id, "place_id": self.place_id}


class NotificationError(ReviewWatchError):
    pass
