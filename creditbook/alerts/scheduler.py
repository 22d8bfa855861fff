"""
Alert Scheduler

Recurring driver for due-date notification rules. Each tick:

1. Fetch enabled rules and open transactions (independently)
2. Classify transactions into due-date alerts
3. For every rule whose schedule gate is open: match alerts, dispatch each
   match, then write back last_run = now once for the rule

last_run is written even when nothing matched, and even when some
dispatches failed. It is the only de-duplication state, so any number of
evaluators (this timer, a manual "check now", another process polling the
same store) can run ticks; a rule fires at most once per scheduling period
unless two evaluators pass the gate before either write-back lands.

Uses APScheduler for the timer. The tick period is independent of rule
frequencies; it must not exceed the gate's time tolerance.
"""

import asyncio
import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from .classifier import classify, sort_by_priority
from .exceptions import MalformedScheduleError, RuleNotFoundError
from .matcher import match
from .models import AlertPriority, AlertType, DueDateAlert
from .schedule import DEFAULT_TOLERANCE_MINUTES, is_eligible
from .schemas import NotificationRuleSchema, RuleSchedule
from .store import RuleStore, TransactionSource

from creditbook.notifications.dispatch import DispatchSink
from creditbook.notifications.templates import render_message

logger = logging.getLogger(__name__)

DEFAULT_DISPATCH_TIMEOUT_SECONDS = 10.0

JOB_ID = "due_date_alerts"


class AlertScheduler:
    """
    Evaluates notification rules against due-date alerts.

    Collaborators are injected so a tick can run without a real timer:
    construct with in-memory stores and a recording sink, then call
    run_once(now=...).
    """

    def __init__(
        self,
        rule_store: RuleStore,
        transaction_source: TransactionSource,
        dispatch_sink: DispatchSink,
        clock: Callable[[], datetime] = datetime.now,
        tolerance_minutes: int = DEFAULT_TOLERANCE_MINUTES,
        dispatch_timeout_seconds: float = DEFAULT_DISPATCH_TIMEOUT_SECONDS,
        horizon_days: Optional[int] = None,
    ):
        self.rule_store = rule_store
        self.transaction_source = transaction_source
        self.dispatch_sink = dispatch_sink
        self.clock = clock
        self.tolerance_minutes = tolerance_minutes
        self.dispatch_timeout_seconds = dispatch_timeout_seconds
        self.horizon_days = horizon_days

        self.running = False
        self._lock = asyncio.Lock()
        self._last_tick: Optional[datetime] = None
        self._last_summary: Optional[dict] = None
        # rule id -> schedule that was reported as malformed
        self._malformed: Dict[str, Optional[RuleSchedule]] = {}

    # =========================================================================
    # TICK
    # =========================================================================

    async def run_once(self, now: Optional[datetime] = None, run_type: str = "scheduled") -> dict:
        """
        Run one evaluation pass.

        Called by the timer every tick and by the "check now" endpoint.
        Passes in one process are serialised; nothing raised inside a pass
        escapes it.

        Returns summary of the pass.
        """
        async with self._lock:
            now = now or self.clock()
            logger.info(f"Starting {run_type} alert check at {now.isoformat()}")

            summary = {
                "run_type": run_type,
                "started_at": now.isoformat(),
                "alerts_found": 0,
                "rules_evaluated": 0,
                "rules_fired": 0,
                "alerts_matched": 0,
                "notifications_sent": 0,
                "dispatch_failures": 0,
                "errors": [],
            }

            rules = await self._fetch_rules(summary)
            alerts = await self._fetch_alerts(now, summary)

            if rules is not None and alerts is not None:
                summary["alerts_found"] = len(alerts)
                await asyncio.gather(*[
                    self._evaluate_rule(rule, alerts, now, summary) for rule in rules
                ])

            summary["completed_at"] = self.clock().isoformat()
            self._last_tick = now
            self._last_summary = summary

            logger.info(
                f"Alert check completed: {summary['rules_fired']} rules fired, "
                f"{summary['notifications_sent']} notifications, "
                f"{summary['dispatch_failures']} failures"
            )
            return summary

    async def _fetch_rules(self, summary: dict) -> Optional[List[NotificationRuleSchema]]:
        try:
            rules = await self.rule_store.list_enabled_rules()
        except Exception as e:
            logger.error(f"Failed to fetch notification rules, skipping this tick: {e}")
            summary["errors"].append({"stage": "rules", "error": str(e)})
            return None

        # A disabled rule must never be evaluated, whatever the store returned
        rules = [rule for rule in rules if rule.enabled]
        if not rules:
            logger.info("No active notification rules found")
        return rules

    async def _fetch_alerts(self, now: datetime, summary: dict) -> Optional[List[DueDateAlert]]:
        try:
            transactions = await self.transaction_source.list_open_transactions_with_due_dates()
        except Exception as e:
            logger.error(f"Failed to fetch open transactions, skipping this tick: {e}")
            summary["errors"].append({"stage": "transactions", "error": str(e)})
            return None

        return classify(transactions, now, horizon_days=self.horizon_days)

    # =========================================================================
    # PER RULE
    # =========================================================================

    def _check_gate(self, rule: NotificationRuleSchema, now: datetime) -> bool:
        try:
            eligible = is_eligible(rule.schedule, rule.last_run, now, self.tolerance_minutes)
        except MalformedScheduleError as e:
            # Report each broken schedule once; a changed schedule is re-checked
            if rule.id not in self._malformed or self._malformed[rule.id] != rule.schedule:
                logger.error(f"Notification rule {rule.name!r} ({rule.id}) has an unusable schedule: {e}")
                self._malformed[rule.id] = rule.schedule
            return False

        self._malformed.pop(rule.id, None)
        return eligible

    async def _evaluate_rule(
        self,
        rule: NotificationRuleSchema,
        alerts: List[DueDateAlert],
        now: datetime,
        summary: dict,
    ) -> None:
        try:
            if not self._check_gate(rule, now):
                return

            summary["rules_evaluated"] += 1
            matched = match(rule, alerts)

            if matched:
                logger.info(f"Rule {rule.name!r} matched {len(matched)} alerts")
                results = await asyncio.gather(*[
                    self._dispatch_one(rule, alert) for alert in matched
                ])
                sent = sum(1 for ok in results if ok)
                summary["rules_fired"] += 1
                summary["alerts_matched"] += len(matched)
                summary["notifications_sent"] += sent
                summary["dispatch_failures"] += len(results) - sent

        except Exception as e:
            logger.error(f"Error executing rule {rule.name!r}: {e}")
            summary["errors"].append({"rule_id": rule.id, "error": str(e)})

        else:
            await self._write_back(rule, now, summary)

    async def _dispatch_one(self, rule: NotificationRuleSchema, alert: DueDateAlert) -> bool:
        """Dispatch one alert. Never raises; returns whether it was delivered."""
        try:
            title, body = render_message(rule.message, alert)
            result = await asyncio.wait_for(
                self.dispatch_sink.dispatch(rule, alert, title, body),
                timeout=self.dispatch_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Dispatch timed out after {self.dispatch_timeout_seconds}s "
                f"for rule {rule.id}, transaction {alert.transaction_id}"
            )
            return False
        except Exception as e:
            logger.error(f"Failed to dispatch rule {rule.id} for transaction {alert.transaction_id}: {e}")
            return False

        if not result.success:
            logger.error(f"Dispatch failed for rule {rule.id}, transaction {alert.transaction_id}: {result.error}")
            return False

        return True

    async def _write_back(self, rule: NotificationRuleSchema, now: datetime, summary: dict) -> None:
        try:
            await self.rule_store.update_rule(rule.id, last_run=now)
        except Exception as e:
            # The rule stays eligible and will most likely fire again next tick
            logger.error(f"Failed to record last run for rule {rule.id}: {e}")
            summary["errors"].append({"rule_id": rule.id, "stage": "write_back", "error": str(e)})

    # =========================================================================
    # ON DEMAND
    # =========================================================================

    async def current_alerts(self, now: Optional[datetime] = None) -> List[DueDateAlert]:
        """Current due-date alerts, most urgent first."""
        now = now or self.clock()
        transactions = await self.transaction_source.list_open_transactions_with_due_dates()
        return sort_by_priority(classify(transactions, now, horizon_days=self.horizon_days))

    async def test_rule(self, rule_id: str, now: Optional[datetime] = None) -> dict:
        """
        Dispatch a sample notification for a rule.

        Ignores the schedule gate and leaves last_run untouched.

        Raises:
            RuleNotFoundError: no rule with this id
        """
        rule = await self.rule_store.get_rule(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)

        now = now or self.clock()
        sample = DueDateAlert(
            transaction_id=f"test-{int(now.timestamp())}",
            customer_name="Test Customer",
            amount=Decimal("5000"),
            due_date=now,
            alert_type=AlertType.DUE_SOON,
            priority=AlertPriority.HIGH,
            days_until_due=0,
        )
        title, body = render_message(rule.message, sample)
        logger.info(f"[TEST NOTIFICATION] {title}: {body}")

        delivered = await self._dispatch_one(rule, sample)
        return {
            "success": delivered,
            "message": "Test notification sent!" if delivered else "Test notification failed",
            "notification": {**sample.to_dict(), "title": title, "body": body},
        }

    def get_status(self) -> dict:
        """Get scheduler status including the last tick."""
        return {
            "running": self.running,
            "last_tick": self._last_tick.isoformat() if self._last_tick else None,
            "last_summary": self._last_summary,
            "malformed_rules": sorted(self._malformed),
        }


def setup_apscheduler(scheduler, alert_scheduler: AlertScheduler, tick_minutes: int) -> None:
    """
    Configure APScheduler with the alert check job.

    Usage:
        from apscheduler.schedulers.asyncio import AsyncIOScheduler
        scheduler = AsyncIOScheduler()
        setup_apscheduler(scheduler, alert_scheduler, settings.ALERT_TICK_MINUTES)
        scheduler.start()

    Args:
        scheduler: APScheduler instance (AsyncIOScheduler)
        alert_scheduler: The evaluator the job drives
        tick_minutes: Interval between ticks
    """
    scheduler.add_job(
        alert_scheduler.run_once,
        'interval',
        minutes=tick_minutes,
        id=JOB_ID,
        name='Due Date Alert Check',
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    logger.info(f"Alert scheduler job configured: every {tick_minutes} minutes")
