"""
Unit tests for the structlog processors.
"""

from scorecard.models.enums import Status, WindowKind
from scorecard.models.results import NO_DATA
from scorecard.utils.logging import SERVICE_NAME, add_service, add_severity, flatten_domain_values


class TestProcessors:
    """Custom processors in the structlog chain."""

    def test_flatten_domain_values(self):
        event = {"event": "x", "window": WindowKind.WEEK, "status": Status.AT_RISK, "value": NO_DATA, "n": 3}
        out = flatten_domain_values(None, "info", event)
        assert out == {"event": "x", "window": "week", "status": "at_risk", "value": None, "n": 3}

    def test_add_severity(self):
        assert add_severity(None, "warning", {})["severity"] == "WARNING"

    def test_add_service_keeps_explicit_value(self):
        assert add_service(None, "info", {})["service"] == SERVICE_NAME
        assert add_service(None, "info", {"service": "other"})["service"] == "other"
