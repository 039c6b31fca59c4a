"""Scenario catalog for :mod:`mctoken`."""

from __future__ import annotations

from .gpu_lease import (
    SALVAGE_SCENARIOS,
    SERVER_MODELS,
    TOKEN_PRICE_MULTIPLIERS,
    UTILIZATION_SCENARIOS,
    LeaseScenario,
    ReturnMetric,
    ScenarioKind,
    ScenarioMetrics,
    SensitivityVariable,
    ServerModel,
    get_server_model,
    make_return_function,
    progressive_share_percentage,
)

__all__ = [
    "SERVER_MODELS",
    "ServerModel",
    "LeaseScenario",
    "ScenarioMetrics",
    "SensitivityVariable",
    "ScenarioKind",
    "UTILIZATION_SCENARIOS",
    "SALVAGE_SCENARIOS",
    "TOKEN_PRICE_MULTIPLIERS",
    "ReturnMetric",
    "get_server_model",
    "make_return_function",
    "progressive_share_percentage",
]
