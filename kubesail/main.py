#!/usr/bin/env python3
"""
Kubesail - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Initializes modules (state, cluster, DNS, tenant databases, jobs)
3. Starts the task processors and cron scheduler
4. Serves the internal API

All business logic is in the modules, following black box principles.
"""

import logging
import logging.config as log_config
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as redis
import uvicorn
from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse

from kubesail import __version__
from kubesail.config.provider import ConfigProvider, EnvConfigProvider
from kubesail.logging_config import get_logging_config
from kubesail.modules.api import (
    AcceptTaskRequest,
    AcceptTaskResponse,
    CreateDomainRequest,
    DomainListResponse,
    DomainResponse,
)
from kubesail.modules.cluster import ClusterClient

# Import modules through their black box interfaces
from kubesail.modules.config import get_config
from kubesail.modules.domain import DNSResolver, DomainVerifier
from kubesail.modules.errors import ProcessorClosedError, RecordNotFoundError, UnknownJobTypeError
from kubesail.modules.jobs import (
    AuditJob,
    CronScheduler,
    DomainCheckJob,
    JobContext,
    JobRegistry,
    TaskDispatcher,
    TaskProcessor,
    VerifyDomainJob,
)
from kubesail.modules.state import StateStore
from kubesail.modules.storage import StorageModule
from kubesail.modules.tenant import TenantDatabaseManager
from kubesail.modules.workload import WorkloadReconciler

# Get configuration
config = get_config()

log_config.dictConfig(get_logging_config(config.get("log_level")))
logger = logging.getLogger(__name__)

# Configuration provider (centralized config access)
config_provider: ConfigProvider = EnvConfigProvider()

# Module instances (initialized at startup)
storage: Optional[StorageModule] = None
cluster: Optional[ClusterClient] = None
task_processor: Optional[TaskProcessor] = None
verify_processor: Optional[TaskProcessor] = None
scheduler: Optional[CronScheduler] = None
dispatcher: Optional[TaskDispatcher] = None
verifier: Optional[DomainVerifier] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle - initialize and cleanup resources.
    """
    global storage, cluster, task_processor, verify_processor, scheduler, dispatcher, verifier

    # Startup
    logger.info("Starting Kubesail processing core...")

    storage = StorageModule.from_config(config)
    redis_client = await storage.connect()
    store = StateStore(redis_client)

    cluster_config = config_provider.get_cluster_config()
    cluster = ClusterClient(cluster_config)
    await cluster.connect()

    task_processor = TaskProcessor(
        workers=config.get("task_workers"),
        queue_size=config.get("task_queue_size"),
        name="tasks",
    )
    # Verification runs are long-lived polls; a separate pool caps how many
    # run at once without starving deploys.
    verify_processor = TaskProcessor(
        workers=config.get("verify_workers"),
        queue_size=config.get("verify_queue_size"),
        name="verify",
    )

    reconciler = WorkloadReconciler(cluster, cluster_config)
    verifier = DomainVerifier(
        store,
        cluster,
        DNSResolver(),
        cluster_config,
        config_provider.get_verification_config(),
        processor=verify_processor,
    )
    tenants = TenantDatabaseManager(config_provider.get_tenant_database_config(), cluster)

    context = JobContext(store=store, reconciler=reconciler, verifier=verifier, tenants=tenants)
    dispatcher = TaskDispatcher(
        JobRegistry(context),
        task_processor,
        routes={VerifyDomainJob.job_type: verify_processor},
    )

    scheduler = CronScheduler(task_processor)
    scheduler.register_job(
        config.get("audit_interval"), lambda: AuditJob(store, reconciler), name=AuditJob.job_type
    )
    scheduler.register_job(
        config.get("domain_check_interval"), lambda: DomainCheckJob(verifier), name=DomainCheckJob.job_type
    )

    task_processor.start()
    verify_processor.start()
    scheduler.start()

    logger.info("Kubesail started successfully")

    yield

    # Shutdown
    logger.info("Shutting down Kubesail...")
    await scheduler.close()
    await task_processor.close()
    await verify_processor.close()
    await cluster.close()
    await storage.disconnect()
    logger.info("Kubesail shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Kubesail",
    description="Kubesail - serverless control plane processing core",
    version=__version__,
    lifespan=lifespan,
)


@app.get("/healthz")
async def healthz():
    """
    Minimal health check endpoint for Kubernetes readiness/liveness probes.

    Returns:
        200: Service is running
    """
    return {"status": "ok"}


@app.get("/health")
async def health_check():
    """
    Health check with Redis status and processor counters.

    Returns:
        200: Service healthy
        503: Service unhealthy
    """
    try:
        redis_status = "connected" if storage and await storage.ping() else "disconnected"
        processors = [p.stats() for p in (task_processor, verify_processor) if p]
        processors_ready = bool(processors) and all(p["running"] for p in processors)

        body = {
            "status": "healthy" if redis_status == "connected" and processors_ready else "unhealthy",
            "redis": redis_status,
            "processors": processors,
            "version": __version__,
        }
        if body["status"] == "healthy":
            return body
        return JSONResponse(status_code=503, content=body)
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unhealthy", "error": str(e)})


@app.post("/internal/tasks", response_model=AcceptTaskResponse, status_code=202)
async def accept_task(request: AcceptTaskRequest):
    """
    Accept a job submission from the request layer.

    Waits while the target processor's queue is full.

    Returns:
        202: Job queued
        400: Unknown task type or incomplete payload
        503: Processor shutting down
    """
    if not dispatcher:
        raise HTTPException(503, "Service not initialized")

    try:
        job = await dispatcher.submit_task(request.task_type, request.data)
    except UnknownJobTypeError as e:
        raise HTTPException(400, str(e))
    except KeyError as e:
        raise HTTPException(400, f"Missing field in task data: {e}")
    except ProcessorClosedError as e:
        raise HTTPException(503, str(e))

    return AcceptTaskResponse(task_type=job.job_type, job_id=job.job_id)


@app.post("/internal/domains", response_model=DomainResponse, status_code=201)
async def create_domain(request: CreateDomainRequest):
    """
    Create a custom domain claim and schedule its verification.

    Returns:
        201: Claim created, TXT record to publish in the body
    """
    if not verifier:
        raise HTTPException(503, "Service not initialized")
    try:
        claim = await verifier.create_claim(request.owner_id, request.domain, request.target)
    except ProcessorClosedError as e:
        raise HTTPException(503, str(e))
    return DomainResponse.from_claim(claim)


@app.get("/internal/domains", response_model=DomainListResponse)
async def list_domains(owner_id: Optional[str] = Query(None)):
    if not verifier:
        raise HTTPException(503, "Service not initialized")
    claims = await verifier.list_claims(owner_id)
    return DomainListResponse(domains=[DomainResponse.from_claim(c) for c in claims])


@app.get("/internal/domains/{claim_id}", response_model=DomainResponse)
async def get_domain(claim_id: str):
    if not verifier:
        raise HTTPException(503, "Service not initialized")
    return DomainResponse.from_claim(await verifier.get_claim(claim_id))


@app.delete("/internal/domains/{claim_id}")
async def delete_domain(claim_id: str):
    """
    Delete a claim and its routing resources, whatever its status.

    Returns:
        200: Deleted (also when the claim was already gone)
    """
    if not verifier:
        raise HTTPException(503, "Service not initialized")
    removed = await verifier.delete_claim(claim_id)
    return {"claim_id": claim_id, "deleted": removed}


# Error handlers


@app.exception_handler(RecordNotFoundError)
async def not_found_handler(request, exc):
    """Handle missing records."""
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(redis.ConnectionError)
async def redis_error_handler(request, exc):
    """Handle Redis connection errors."""
    logger.error(f"Redis connection error: {exc}")
    return JSONResponse(status_code=503, content={"error": "Database connection failed"})


def main() -> None:
    # Use dict config for logging, not file path
    uvicorn.run(
        "kubesail.main:app",
        host=config.get("host"),
        port=config.get("port"),
        log_level=config.get("log_level").lower(),
        reload=config.get("debug"),
        log_config=get_logging_config(config.get("log_level")),
    )


if __name__ == "__main__":
    main()
