"""HTTP API - FastAPI application, routes and wiring."""
