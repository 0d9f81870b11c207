"""Service layer: history cache, settings, and telemetry."""
