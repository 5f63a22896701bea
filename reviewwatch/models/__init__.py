"""Database models — re-exports all models.

Import from here:  from reviewwatch.models import Review, Place, ...
Or from submodules: from reviewwatch.models.reviews import Review
"""

from .base import Base, UTCDateTime  # noqa: F401

# Monitored listings
from .places import Place  # noqa: F401

# Reviews, versions, audit trail
from .reviews import Review, ReviewAction, ReviewVersion  # noqa: F401

# Alerting
from .alerts import AlertLogEntry, AlertSettings  # noqa: F401
