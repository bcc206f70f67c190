"""
Simulation Service
Request validation, the simulation wizard and the simulation history.
"""
from .validator import validate
from .history_store import SimulationHistoryStore
from .wizard import WizardStateMachine, WizardStep

__all__ = [
    "validate",
    "SimulationHistoryStore",
    "WizardStateMachine",
    "WizardStep",
]
