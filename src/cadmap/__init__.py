"""CAD live map service - FastAPI front end for the cadsim engine."""

__version__ = "0.1.0"
