"""
Emergency services: SOS trigger, alert lifecycle and alert feed
"""

from .alert_feed import AlertFeed
from .alert_lifecycle import ALLOWED_TRANSITIONS, AlertLifecycle, TransitionResult
from .trigger_workflow import AlertTriggerWorkflow, TriggerOutcome, TriggerResult

__all__ = [
    'AlertFeed',
    'AlertLifecycle',
    'ALLOWED_TRANSITIONS',
    'TransitionResult',
    'AlertTriggerWorkflow',
    'TriggerOutcome',
    'TriggerResult',
]
