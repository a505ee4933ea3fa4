"""FastAPI server for the testflow pipeline service.

Provides REST API endpoints for starting pipeline runs, deciding approval
gates, executing automation triggers and managing missions.

Endpoints:
    GET  /health                          : Health check
    POST /pipelines/{pipeline_id}/runs    : Start a pipeline execution
    GET  /pipelines/runs                  : List executions
    GET  /pipelines/runs/{execution_id}   : Execution status
    POST /approvals/{gate_id}             : Approve or reject a gate
    GET  /approvals/pending               : Pending approval gates
    POST /triggers/{trigger_id}           : Execute an automation trigger
    POST /missions                        : Create a mission
    GET  /missions                        : List missions
    POST /missions/run                    : Execute every mission
    POST /missions/{mission_id}/suites    : Add a sub-task suite
    POST /suites/{suite_id}/tests         : Add a test to a suite

Example:
    testflow-server configs/pipeline.yaml --port 8000
"""

from __future__ import annotations

import argparse
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, NoReturn

from fastapi import FastAPI, HTTPException, Request

from testflow_core.errors import (
    DuplicateApprovalError,
    GateClosedError,
    NotFoundError,
    TestflowError,
    TriggerDisabledError,
    UnauthorizedApproverError,
)
from testflow_core.types.definition import TestSpec

from testflow_pipeline.config import PipelineConfig, load_pipeline_config
from testflow_pipeline.models import (
    ApprovalRequest,
    AutomationReportModel,
    ExecutionModel,
    GateModel,
    MissionModel,
    MissionRequest,
    RunRequest,
    SuiteModel,
    SuiteRequest,
    TestModel,
    TestRequest,
    TriggerRequest,
)
from testflow_pipeline.services import PipelineServices, build_services

logger = logging.getLogger(__name__)


def create_app(
    config_path: str | Path | None = None,
    services: PipelineServices | None = None,
) -> FastAPI:
    """Create a FastAPI application.

    Args:
        config_path: Path to pipeline configuration YAML. Defaults are used
            if omitted.
        services: Prebuilt service graph. Takes precedence over
            ``config_path``.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        app_services = services
        if app_services is None:
            config = PipelineConfig()
            if config_path:
                logger.info("Loading pipeline configuration from %s", config_path)
                config = load_pipeline_config(config_path)
            app_services = build_services(config)

        app.state.services = app_services
        logger.info(
            "Pipeline service ready with environments: %s",
            ", ".join(app_services.manager.environments),
        )

        yield

        logger.info("Shutting down pipeline service")
        await app_services.aclose()

    app = FastAPI(
        title="testflow Pipeline",
        description="Test orchestration and deployment pipeline service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_api_route("/health", _health, methods=["GET"])
    app.add_api_route(
        "/pipelines/runs", _list_runs, methods=["GET"], response_model=list[ExecutionModel]
    )
    app.add_api_route(
        "/pipelines/runs/{execution_id}",
        _get_run,
        methods=["GET"],
        response_model=ExecutionModel,
    )
    app.add_api_route(
        "/pipelines/{pipeline_id}/runs",
        _create_run,
        methods=["POST"],
        response_model=ExecutionModel,
        status_code=201,
    )
    app.add_api_route(
        "/approvals/pending", _pending_approvals, methods=["GET"], response_model=list[GateModel]
    )
    app.add_api_route(
        "/approvals/{gate_id}", _process_approval, methods=["POST"], response_model=GateModel
    )
    app.add_api_route(
        "/triggers/{trigger_id}",
        _execute_trigger,
        methods=["POST"],
        response_model=AutomationReportModel,
    )
    app.add_api_route(
        "/missions", _list_missions, methods=["GET"], response_model=list[MissionModel]
    )
    app.add_api_route(
        "/missions",
        _create_mission,
        methods=["POST"],
        response_model=MissionModel,
        status_code=201,
    )
    app.add_api_route(
        "/missions/run", _run_missions, methods=["POST"], response_model=AutomationReportModel
    )
    app.add_api_route(
        "/missions/{mission_id}/suites",
        _add_suite,
        methods=["POST"],
        response_model=SuiteModel,
        status_code=201,
    )
    app.add_api_route(
        "/suites/{suite_id}/tests",
        _add_test,
        methods=["POST"],
        response_model=TestModel,
        status_code=201,
    )

    return app


def _services(request: Request) -> PipelineServices:
    services: PipelineServices | None = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Services not initialized")
    return services


def _raise_http(exc: TestflowError | ValueError) -> NoReturn:
    """Translate a domain error into an HTTP error."""
    if isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, UnauthorizedApproverError):
        status_code = 403
    elif isinstance(exc, (DuplicateApprovalError, GateClosedError, TriggerDisabledError)):
        status_code = 409
    else:
        status_code = 400
    raise HTTPException(status_code=status_code, detail=str(exc)) from exc


# =============================================================================
# Endpoints
# =============================================================================


async def _health(request: Request) -> dict[str, object]:
    services = _services(request)
    return {
        "status": "ok",
        "executions": len(services.manager.get_all_executions()),
        "pending_approvals": len(services.manager.get_pending_approvals()),
    }


async def _create_run(pipeline_id: str, body: RunRequest, request: Request) -> ExecutionModel:
    manager = _services(request).manager
    try:
        execution = await manager.create_execution(
            pipeline_id, body.triggered_by, body.trigger_type, body.environments
        )
    except (TestflowError, ValueError) as exc:
        _raise_http(exc)
    return ExecutionModel.from_execution(execution)


async def _list_runs(request: Request) -> list[ExecutionModel]:
    manager = _services(request).manager
    return [ExecutionModel.from_execution(e) for e in manager.get_all_executions()]


async def _get_run(execution_id: str, request: Request) -> ExecutionModel:
    manager = _services(request).manager
    try:
        execution = manager.get_execution(execution_id)
    except NotFoundError as exc:
        _raise_http(exc)
    return ExecutionModel.from_execution(execution)


async def _pending_approvals(request: Request) -> list[GateModel]:
    manager = _services(request).manager
    return [GateModel.from_gate(g) for g in manager.get_pending_approvals()]


async def _process_approval(gate_id: str, body: ApprovalRequest, request: Request) -> GateModel:
    manager = _services(request).manager
    try:
        gate = await manager.process_approval(
            gate_id, body.approver_id, body.decision, body.comment
        )
    except (TestflowError, ValueError) as exc:
        _raise_http(exc)
    return GateModel.from_gate(gate)


async def _execute_trigger(
    trigger_id: str,
    request: Request,
    body: TriggerRequest | None = None,
) -> AutomationReportModel:
    automation = _services(request).automation
    payload = body.to_payload() if body is not None else {}
    try:
        report = await automation.execute_trigger(trigger_id, payload)
    except (TestflowError, ValueError) as exc:
        _raise_http(exc)
    return AutomationReportModel.from_report(report)


async def _list_missions(request: Request) -> list[MissionModel]:
    framework = _services(request).framework
    return [MissionModel.from_mission(m) for m in framework.get_all_missions()]


async def _create_mission(body: MissionRequest, request: Request) -> MissionModel:
    framework = _services(request).framework
    mission = framework.create_mission(
        body.title, body.description, body.requirements, body.coordinator
    )
    return MissionModel.from_mission(mission)


async def _run_missions(request: Request) -> AutomationReportModel:
    automation = _services(request).automation
    report = await automation.execute_all_missions()
    return AutomationReportModel.from_report(report)


async def _add_suite(mission_id: str, body: SuiteRequest, request: Request) -> SuiteModel:
    framework = _services(request).framework
    try:
        suite = framework.add_sub_task_suite(
            mission_id, body.name, body.description, body.owner, body.requirements
        )
    except NotFoundError as exc:
        _raise_http(exc)
    return SuiteModel.from_suite(suite)


async def _add_test(suite_id: str, body: TestRequest, request: Request) -> TestModel:
    framework = _services(request).framework
    spec = TestSpec(
        type=body.type,
        title=body.title,
        description=body.description,
        agent_role=body.agent_role,
        requirements=tuple(body.requirements),
        test_code=body.test_code,
        created_by=body.created_by,
    )
    try:
        test = framework.add_test_to_suite(suite_id, spec)
    except NotFoundError as exc:
        _raise_http(exc)
    return TestModel.from_test(test)


# =============================================================================
# CLI Entry Point
# =============================================================================


def main() -> None:
    """Command-line entry point for the pipeline server."""
    parser = argparse.ArgumentParser(description="Start the testflow pipeline server")
    parser.add_argument(
        "config",
        type=Path,
        help="Path to pipeline configuration YAML file",
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to listen on (default: 8000)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.config.exists():
        logger.error("Config file not found: %s", args.config)
        sys.exit(1)

    import uvicorn  # pylint: disable=import-outside-toplevel

    app = create_app(args.config)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
