"""HTTP API routers for Automator."""
