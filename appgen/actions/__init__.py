"""Action logs: steps and log entries recording long running work."""

from appgen.actions.models import Action, ActionLog, ActionStep

__all__ = ["Action", "ActionLog", "ActionStep"]
