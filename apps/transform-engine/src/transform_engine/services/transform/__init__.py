"""Outcome executors and the steps they share."""

from transform_engine.services.transform.context import (
    ExecutorServices,
    OutcomeContext,
    PollPolicy,
    ProgressReporter,
)
from transform_engine.services.transform.dispatcher import OUTCOME_EXECUTORS, dispatch
from transform_engine.services.transform.prompts import ResolvedPrompt, resolve_prompt_mentions

__all__ = [
    "ExecutorServices",
    "OUTCOME_EXECUTORS",
    "OutcomeContext",
    "PollPolicy",
    "ProgressReporter",
    "ResolvedPrompt",
    "dispatch",
    "resolve_prompt_mentions",
]
