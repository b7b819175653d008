"""Runtime: dispatch, health, telemetry and observability."""
