"""API routers for the scorecard engine."""
