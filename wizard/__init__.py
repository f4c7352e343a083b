"""Step-graph wizards that collect configuration and commit it to the store."""

from wizard.engine import WizardEngine, WizardSession
from wizard.graph import Choice, InputEvent, InputKind, Reply, StepDefinition, StepGraph, StepResult

__all__ = [
    "Choice",
    "InputEvent",
    "InputKind",
    "Reply",
    "StepDefinition",
    "StepGraph",
    "StepResult",
    "WizardEngine",
    "WizardSession",
]
