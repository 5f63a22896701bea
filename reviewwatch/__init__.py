"""reviewwatch — Google review ingestion and low-rating alerting."""

__version__ = "1.0.0"
