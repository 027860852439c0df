"""Job lookup by discriminator and task submission."""

import logging
from typing import Any, Dict, List, Optional, Type

from ..errors import UnknownJobTypeError
from .base import Job, JobContext
from .domain import VerifyDomainJob
from .periodic import AuditJob, DomainCheckJob
from .processor import TaskProcessor
from .tenant import CreateDataResourceJob, DeleteDataResourceJob, RegisterTenantJob
from .workload import DeleteWorkloadResourcesJob, DeployWorkloadJob, SyncConfigJob, SyncSecretJob

logger = logging.getLogger(__name__)

DEFAULT_JOBS = (
    DeployWorkloadJob,
    SyncConfigJob,
    SyncSecretJob,
    DeleteWorkloadResourcesJob,
    RegisterTenantJob,
    CreateDataResourceJob,
    DeleteDataResourceJob,
    AuditJob,
    DomainCheckJob,
    VerifyDomainJob,
)


class JobRegistry:
    """Maps job_type discriminators to job classes bound to a shared context."""

    def __init__(self, context: JobContext, job_classes=DEFAULT_JOBS):
        self.context = context
        self._classes: Dict[str, Type[Job]] = {}
        for job_class in job_classes:
            self.register(job_class)

    def register(self, job_class: Type[Job]) -> None:
        if not job_class.job_type:
            raise ValueError(f"{job_class.__name__} has no job_type")
        self._classes[job_class.job_type] = job_class

    def job_types(self) -> List[str]:
        return sorted(self._classes)

    def build(self, task_type: str, payload: Optional[Dict[str, Any]] = None) -> Job:
        """
        Construct a job from its discriminator and payload.

        Raises:
            UnknownJobTypeError: no job class registered for task_type
            KeyError: payload is missing a required field
        """
        job_class = self._classes.get(task_type)
        if job_class is None:
            raise UnknownJobTypeError(f"unknown task type: {task_type}")
        return job_class.from_payload(self.context, payload or {})


class TaskDispatcher:
    """
    Builds jobs and submits them to the processor for their type.

    Job types listed in routes go to a dedicated processor, everything else
    to the default one.
    """

    def __init__(
        self,
        registry: JobRegistry,
        processor: TaskProcessor,
        routes: Optional[Dict[str, TaskProcessor]] = None,
    ):
        self.registry = registry
        self.processor = processor
        self.routes = routes or {}

    async def submit(self, job: Job) -> None:
        await self.routes.get(job.job_type, self.processor).submit(job)

    async def submit_task(self, task_type: str, payload: Optional[Dict[str, Any]] = None) -> Job:
        """
        Build and submit a job.

        Returns:
            The submitted job
        """
        job = self.registry.build(task_type, payload)
        await self.submit(job)
        logger.info(f"Accepted task {task_type} {job.job_id}")
        return job
