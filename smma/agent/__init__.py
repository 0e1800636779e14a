"""Marketing pipeline package.

Public API::

    from smma.agent import PipelineService
    service = PipelineService()
    started, run = await service.trigger(conn, domain)
"""

from smma.agent.orchestrator import PIPELINE_TASKS, TaskStatus, run_pipeline
from smma.agent.registry import RunRegistry
from smma.agent.runner import PipelineService
from smma.agent.steps import PipelineOptions

__all__ = [
    "PIPELINE_TASKS",
    "PipelineOptions",
    "PipelineService",
    "RunRegistry",
    "TaskStatus",
    "run_pipeline",
]
