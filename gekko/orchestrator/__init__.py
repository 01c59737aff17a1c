"""Orchestrator control: wire models and the control client.

The client lives in ``gekko.orchestrator.client``; it depends on the
session store, which itself imports these models.
"""

from gekko.orchestrator.models import (
    EmergencyHaltCommand,
    Envelope,
    OrchestratorState,
    RiskThrottleCommand,
    WindDownCommand,
)

__all__ = [
    "EmergencyHaltCommand",
    "Envelope",
    "OrchestratorState",
    "RiskThrottleCommand",
    "WindDownCommand",
]
