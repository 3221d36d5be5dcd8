"""fleetcheck: checklist engine for maritime fleet-compliance reporting."""

__version__ = "0.1.0"
