"""HTTP interface - FastAPI application, routes and request models."""
