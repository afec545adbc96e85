# yggdrasil/routers/workflows.py
"""Control of the attendance workflow automation."""
from typing import Any, Optional
from fastapi import APIRouter, Body, Depends, Request
import logging

from ..core.scheduler import WorkflowScheduler
from ..core.security import CurrentUser, UserRole, get_current_user, require_roles
from ..schemas.workflow_schemas import TriggerRequest, WorkflowConfigUpdate
from ..services.attendance_workflow_service import AttendanceRuleEngine
from ..utils.responses import success_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/planning/attendance-workflows", tags=["Planning - Attendance Workflows"])


def get_scheduler(request: Request) -> WorkflowScheduler:
    return request.app.state.scheduler


def get_rule_engine(request: Request) -> AttendanceRuleEngine:
    return request.app.state.rule_engine


def _require_staff(user: CurrentUser):
    require_roles(user, UserRole.ADMIN, UserRole.STAFF)


def _jsonable(result: Any) -> Any:
    if isinstance(result, list):
        return [_jsonable(item) for item in result]
    if hasattr(result, "to_dict"):
        return result.to_dict()
    return result


@router.get("/status")
async def get_workflow_status(
    scheduler: WorkflowScheduler = Depends(get_scheduler),
    engine: AttendanceRuleEngine = Depends(get_rule_engine),
):
    return success_response({
        **scheduler.status(),
        "config": engine.get_config().to_dict(),
        "pending_notifications": engine.dispatcher.pending,
    })


@router.get("/config")
async def get_workflow_config(engine: AttendanceRuleEngine = Depends(get_rule_engine)):
    return success_response(engine.get_config().to_dict())


@router.put("/config")
async def update_workflow_config(
    config: WorkflowConfigUpdate,
    user: CurrentUser = Depends(get_current_user),
    engine: AttendanceRuleEngine = Depends(get_rule_engine),
):
    _require_staff(user)
    updated = engine.update_config(**config.model_dump(exclude_none=True))
    return success_response(updated.to_dict(), "Workflow configuration updated")


@router.post("/start")
async def start_workflows(
    user: CurrentUser = Depends(get_current_user),
    scheduler: WorkflowScheduler = Depends(get_scheduler),
):
    _require_staff(user)
    started = scheduler.start()
    return success_response(
        scheduler.status(),
        "Attendance workflows started" if started else "Attendance workflows already running",
    )


@router.post("/stop")
async def stop_workflows(
    user: CurrentUser = Depends(get_current_user),
    scheduler: WorkflowScheduler = Depends(get_scheduler),
):
    _require_staff(user)
    stopped = await scheduler.stop()
    return success_response(
        scheduler.status(),
        "Attendance workflows stopped" if stopped else "Attendance workflows already stopped",
    )


@router.post("/trigger")
async def trigger_attendance_check(
    payload: Optional[TriggerRequest] = Body(None),
    user: CurrentUser = Depends(get_current_user),
    engine: AttendanceRuleEngine = Depends(get_rule_engine),
):
    """Run the attendance rules now, for one promotion or all active ones"""
    require_roles(user, UserRole.ADMIN, UserRole.STAFF, UserRole.TEACHER)
    promotion_id = payload.promotion_id if payload else None
    alerts = await engine.trigger_attendance_check(promotion_id)
    return success_response(
        [alert.to_dict() for alert in alerts],
        f"Attendance check completed: {len(alerts)} alert(s)",
    )


@router.post("/jobs/{name}/run")
async def run_job(
    name: str,
    user: CurrentUser = Depends(get_current_user),
    scheduler: WorkflowScheduler = Depends(get_scheduler),
):
    _require_staff(user)
    outcome = await scheduler.run_job(name)
    if "result" in outcome:
        outcome["result"] = _jsonable(outcome["result"])
    message = f"Job {name} completed" if outcome["success"] else f"Job {name} failed"
    return success_response(outcome, message)
