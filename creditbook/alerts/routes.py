"""
Notification Routes

Operator endpoints for notification rules and the alert scheduler.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from .exceptions import RuleNotFoundError, RuleStoreError, TransactionSourceError
from .scheduler import AlertScheduler
from .schemas import NotificationRuleSchema, RuleUpdate

router = APIRouter(prefix="/notifications", tags=["Notifications"])


# =============================================================================
# SCHEMAS
# =============================================================================

class AlertResponse(BaseModel):
    """Response schema for a due-date alert."""
    transaction_id: str
    customer_name: str
    amount: float
    due_date: str
    alert_type: str
    priority: str
    days_overdue: Optional[int] = None
    days_until_due: Optional[int] = None


class AlertsResponse(BaseModel):
    alerts: List[AlertResponse]
    total: int


class RulesResponse(BaseModel):
    rules: List[NotificationRuleSchema]


class TestRuleResponse(BaseModel):
    success: bool
    message: str
    notification: Dict[str, Any]


class CheckNowResponse(BaseModel):
    """Summary of a manual evaluation pass."""
    run_type: str
    started_at: str
    completed_at: str
    alerts_found: int
    rules_evaluated: int
    rules_fired: int
    alerts_matched: int
    notifications_sent: int
    dispatch_failures: int
    errors: List[Dict[str, Any]]


class SchedulerStatusResponse(BaseModel):
    running: bool
    last_tick: Optional[str] = None
    last_summary: Optional[Dict[str, Any]] = None
    malformed_rules: List[str]


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_alert_scheduler(request: Request) -> AlertScheduler:
    """The process's AlertScheduler, created in the app lifespan."""
    scheduler = getattr(request.app.state, "alert_scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Alert scheduler not initialised")
    return scheduler


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/rules", response_model=RulesResponse)
async def list_rules(scheduler: AlertScheduler = Depends(get_alert_scheduler)):
    """Get all notification rules."""
    try:
        rules = await scheduler.rule_store.list_rules()
    except RuleStoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return RulesResponse(rules=rules)


@router.patch("/rules/{rule_id}", response_model=NotificationRuleSchema)
async def update_rule(
    rule_id: str,
    update: RuleUpdate,
    scheduler: AlertScheduler = Depends(get_alert_scheduler),
):
    """Enable or disable a notification rule."""
    try:
        return await scheduler.rule_store.update_rule(rule_id, enabled=update.enabled)
    except RuleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RuleStoreError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/rules/{rule_id}/test", response_model=TestRuleResponse)
async def test_rule(rule_id: str, scheduler: AlertScheduler = Depends(get_alert_scheduler)):
    """
    Send a sample notification for a rule.

    The rule's schedule and last run are not consulted or changed.
    """
    try:
        return await scheduler.test_rule(rule_id)
    except RuleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RuleStoreError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/alerts", response_model=AlertsResponse)
async def get_due_date_alerts(scheduler: AlertScheduler = Depends(get_alert_scheduler)):
    """Current due-date alerts, most urgent first."""
    try:
        alerts = await scheduler.current_alerts()
    except TransactionSourceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return AlertsResponse(
        alerts=[AlertResponse(**alert.to_dict()) for alert in alerts],
        total=len(alerts),
    )


@router.post("/check-now", response_model=CheckNowResponse)
async def check_now(scheduler: AlertScheduler = Depends(get_alert_scheduler)):
    """
    Run an evaluation pass immediately.

    Same as a timer tick: rules outside their schedule window, or already
    fired this period, are not fired again.
    """
    return await scheduler.run_once(run_type="manual")


@router.get("/scheduler/status", response_model=SchedulerStatusResponse)
async def scheduler_status(scheduler: AlertScheduler = Depends(get_alert_scheduler)):
    """Get scheduler status including the last tick."""
    return scheduler.get_status()
