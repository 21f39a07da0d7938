"""
Demand forecasting hook.

The register exposes /api/predictions so the dashboard has somewhere to
ask; no forecasting model ships with it.  Deployments that have one
implement PredictionProvider and hand it to create_app().
"""
from typing import Protocol


class PredictionProvider(Protocol):
    def forecast(self) -> dict:
        """Return ``{"available": bool, "forecast": [...]}``."""
        ...


class NullPredictionProvider:
    """Reports that no forecast is available."""

    def forecast(self) -> dict:
        return {"available": False, "forecast": []}
