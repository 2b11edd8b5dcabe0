"""
Deployment flows and their executor.
"""

from .orchestrator import Pipeline, PipelineRun, RunState, run
from .steps import BUILD, DEPLOY, FLOW_STEPS, NOTIFY, steps_for

__all__ = [
    "Pipeline",
    "PipelineRun",
    "RunState",
    "run",
    "BUILD",
    "DEPLOY",
    "NOTIFY",
    "FLOW_STEPS",
    "steps_for",
]
