"""
Tests for the Alert Scheduler.

Runs ticks against in-memory stores and a recording sink with an injected
clock; no real timer is involved.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from creditbook.alerts.exceptions import RuleNotFoundError, RuleStoreError, TransactionSourceError
from creditbook.alerts.scheduler import AlertScheduler, JOB_ID, setup_apscheduler
from creditbook.alerts.store import InMemoryRuleStore, InMemoryTransactionSource

from helpers import NOW, RecordingSink, make_rule, make_transaction


def build_scheduler(rules, transactions, sink=None, **kwargs):
    rule_store = InMemoryRuleStore(rules)
    source = InMemoryTransactionSource(transactions)
    sink = sink or RecordingSink()
    scheduler = AlertScheduler(rule_store, source, sink, clock=lambda: NOW, **kwargs)
    return scheduler, rule_store, sink


def overdue_rule(**overrides):
    data = {
        "type": "overdue",
        "conditions": {"days_overdue": 3},
        "schedule": {"frequency": "daily", "time": "09:00"},
    }
    data.update(overrides)
    return make_rule(**data)


# =============================================================================
# Scenarios
# =============================================================================

class TestTickScenarios:
    """End-to-end ticks over a daily 09:00 overdue rule."""

    @pytest.mark.asyncio
    async def test_eligible_rule_fires_and_records_last_run(self):
        """09:02, never run, alert 5 days overdue: dispatch and write back."""
        scheduler, store, sink = build_scheduler(
            [overdue_rule()],
            [make_transaction(id="txn-5", due_in_days=-5, customer_name="Ravi Stores", amount="2500")],
        )

        summary = await scheduler.run_once(now=NOW)

        assert len(sink.calls) == 1
        rule_id, txn_id, title, body = sink.calls[0]
        assert (rule_id, txn_id) == ("rule-1", "txn-5")
        assert title == "Payment overdue: Ravi Stores"
        assert body == "₹2,500.00 is 5 days late (due 05 Mar 2026)"
        assert (await store.get_rule("rule-1")).last_run == NOW
        assert summary["rules_fired"] == 1
        assert summary["notifications_sent"] == 1
        assert summary["errors"] == []

    @pytest.mark.asyncio
    async def test_second_tick_same_day_is_debounced(self):
        """Evaluated again at 09:04: no dispatch, no new write-back."""
        scheduler, store, sink = build_scheduler(
            [overdue_rule()],
            [make_transaction(id="txn-5", due_in_days=-5)],
        )

        await scheduler.run_once(now=NOW)
        store.update_rule = AsyncMock(wraps=store.update_rule)
        summary = await scheduler.run_once(now=NOW + timedelta(minutes=2))

        assert len(sink.calls) == 1
        store.update_rule.assert_not_called()
        assert summary["rules_evaluated"] == 0
        assert (await store.get_rule("rule-1")).last_run == NOW

    @pytest.mark.asyncio
    async def test_no_match_still_advances_last_run(self):
        """Eligible rule with nothing matching: no dispatch, last_run advanced."""
        scheduler, store, sink = build_scheduler(
            [overdue_rule(conditions={"balance_threshold": 5000})],
            [make_transaction(due_in_days=-2, amount="3000")],
        )

        summary = await scheduler.run_once(now=NOW)

        assert sink.calls == []
        assert (await store.get_rule("rule-1")).last_run == NOW
        assert summary["rules_evaluated"] == 1
        assert summary["rules_fired"] == 0

    @pytest.mark.asyncio
    async def test_fires_again_next_day(self):
        scheduler, store, sink = build_scheduler(
            [overdue_rule()],
            [make_transaction(due_in_days=-5)],
        )

        await scheduler.run_once(now=NOW)
        await scheduler.run_once(now=NOW + timedelta(days=1))

        assert len(sink.calls) == 2
        assert (await store.get_rule("rule-1")).last_run == NOW + timedelta(days=1)

    @pytest.mark.asyncio
    async def test_aware_clock_fires_once_per_day_off_utc_host(self, kolkata_local_time):
        """last_run stored as naive IST still debounces a UTC clock on the same date."""
        scheduler, store, sink = build_scheduler(
            [overdue_rule(schedule={"frequency": "daily", "time": "23:55"})],
            [make_transaction(due_in_days=-5)],
        )
        first = datetime(2026, 3, 10, 23, 55, tzinfo=timezone.utc)

        await scheduler.run_once(now=first)
        await scheduler.run_once(now=first + timedelta(minutes=4))

        assert len(sink.calls) == 1
        assert (await store.get_rule("rule-1")).last_run == datetime(2026, 3, 11, 5, 25)

    @pytest.mark.asyncio
    async def test_outside_window_does_nothing(self):
        scheduler, store, sink = build_scheduler(
            [overdue_rule()],
            [make_transaction(due_in_days=-5)],
        )

        await scheduler.run_once(now=NOW.replace(hour=14))

        assert sink.calls == []
        assert (await store.get_rule("rule-1")).last_run is None

    @pytest.mark.asyncio
    async def test_disabled_rule_never_evaluated(self):
        scheduler, store, sink = build_scheduler(
            [overdue_rule(enabled=False)],
            [make_transaction(due_in_days=-5)],
        )

        await scheduler.run_once(now=NOW)

        assert sink.calls == []
        assert (await store.get_rule("rule-1")).last_run is None

    @pytest.mark.asyncio
    async def test_write_back_once_per_rule(self):
        scheduler, store, sink = build_scheduler(
            [overdue_rule(conditions={})],
            [make_transaction(id=f"t{i}", due_in_days=-i - 1) for i in range(4)],
        )
        store.update_rule = AsyncMock(wraps=store.update_rule)

        await scheduler.run_once(now=NOW)

        assert len(sink.calls) == 4
        store.update_rule.assert_awaited_once_with("rule-1", last_run=NOW)

    @pytest.mark.asyncio
    async def test_rules_evaluated_independently(self):
        rules = [
            overdue_rule(id="overdue", name="Overdue", conditions={}),
            make_rule(
                id="reminder",
                name="Due soon",
                type="reminder",
                conditions={"days_overdue": 3},
                schedule={"frequency": "daily", "time": "09:05"},
            ),
            make_rule(
                id="later",
                name="Afternoon",
                type="followup",
                schedule={"frequency": "daily", "time": "15:00"},
            ),
        ]
        scheduler, store, sink = build_scheduler(
            rules,
            [make_transaction(id="late", due_in_days=-1), make_transaction(id="soon", due_in_days=2)],
        )

        await scheduler.run_once(now=NOW)

        assert sorted((c[0], c[1]) for c in sink.calls) == [("overdue", "late"), ("reminder", "soon")]
        assert (await store.get_rule("later")).last_run is None

    @pytest.mark.asyncio
    async def test_uses_clock_when_now_omitted(self):
        scheduler, store, sink = build_scheduler([overdue_rule()], [make_transaction(due_in_days=-5)])

        summary = await scheduler.run_once()

        assert summary["started_at"] == NOW.isoformat()
        assert (await store.get_rule("rule-1")).last_run == NOW

    @pytest.mark.asyncio
    async def test_horizon_limits_due_soon_alerts(self):
        scheduler, store, sink = build_scheduler(
            [make_rule(type="reminder")],
            [make_transaction(id="in-2", due_in_days=2), make_transaction(id="in-20", due_in_days=20)],
            horizon_days=7,
        )

        await scheduler.run_once(now=NOW)

        assert [c[1] for c in sink.calls] == ["in-2"]


# =============================================================================
# Failures
# =============================================================================

class TestFailureHandling:
    """Nothing inside a tick escapes it; failures stay as local as possible."""

    @pytest.mark.asyncio
    async def test_failed_dispatch_does_not_block_siblings_or_write_back(self):
        sink = RecordingSink(fail_for=("t1",), raise_for=("t2",))
        scheduler, store, _ = build_scheduler(
            [overdue_rule(conditions={})],
            [make_transaction(id=f"t{i}", due_in_days=-1) for i in range(4)],
            sink=sink,
        )

        summary = await scheduler.run_once(now=NOW)

        assert sorted(c[1] for c in sink.calls) == ["t0", "t1", "t2", "t3"]
        assert summary["notifications_sent"] == 2
        assert summary["dispatch_failures"] == 2
        assert (await store.get_rule("rule-1")).last_run == NOW

    @pytest.mark.asyncio
    async def test_stalled_dispatch_times_out(self):
        sink = RecordingSink(delay=5.0)
        scheduler, store, _ = build_scheduler(
            [overdue_rule(conditions={})],
            [make_transaction(due_in_days=-1)],
            sink=sink,
            dispatch_timeout_seconds=0.05,
        )

        summary = await scheduler.run_once(now=NOW)

        assert summary["dispatch_failures"] == 1
        assert summary["notifications_sent"] == 0
        assert (await store.get_rule("rule-1")).last_run == NOW

    @pytest.mark.asyncio
    async def test_write_back_after_all_dispatches(self):
        order = []

        class SlowSink(RecordingSink):
            async def dispatch(self, rule, alert, title, body):
                await asyncio.sleep(0.01 if alert.transaction_id == "slow" else 0)
                order.append(("dispatch", alert.transaction_id))
                return await super().dispatch(rule, alert, title, body)

        scheduler, store, _ = build_scheduler(
            [overdue_rule(conditions={})],
            [make_transaction(id="slow", due_in_days=-1), make_transaction(id="fast", due_in_days=-2)],
            sink=SlowSink(),
        )
        original_update = store.update_rule

        async def record_update(rule_id, **kwargs):
            order.append(("write_back", rule_id))
            return await original_update(rule_id, **kwargs)

        store.update_rule = record_update

        await scheduler.run_once(now=NOW)

        assert order[-1] == ("write_back", "rule-1")
        assert {entry[1] for entry in order[:-1]} == {"slow", "fast"}

    @pytest.mark.asyncio
    async def test_rule_fetch_failure_aborts_tick(self):
        scheduler, store, sink = build_scheduler([overdue_rule()], [make_transaction(due_in_days=-5)])
        store.list_enabled_rules = AsyncMock(side_effect=RuleStoreError("database is locked"))

        summary = await scheduler.run_once(now=NOW)

        assert sink.calls == []
        assert summary["errors"][0]["stage"] == "rules"

    @pytest.mark.asyncio
    async def test_transaction_fetch_failure_aborts_tick(self):
        scheduler, store, sink = build_scheduler([overdue_rule()], [])
        scheduler.transaction_source.list_open_transactions_with_due_dates = AsyncMock(
            side_effect=TransactionSourceError("connection reset")
        )

        summary = await scheduler.run_once(now=NOW)

        assert sink.calls == []
        assert summary["errors"] == [{"stage": "transactions", "error": "connection reset"}]
        assert (await store.get_rule("rule-1")).last_run is None

    @pytest.mark.asyncio
    async def test_fetch_failure_retried_next_tick(self):
        scheduler, store, sink = build_scheduler([overdue_rule()], [make_transaction(due_in_days=-5)])
        real_list = store.list_enabled_rules
        store.list_enabled_rules = AsyncMock(side_effect=[RuleStoreError("timeout"), await real_list()])

        await scheduler.run_once(now=NOW)
        await scheduler.run_once(now=NOW + timedelta(minutes=2))

        assert len(sink.calls) == 1

    @pytest.mark.asyncio
    async def test_write_back_failure_is_logged(self, caplog):
        scheduler, store, sink = build_scheduler([overdue_rule()], [make_transaction(due_in_days=-5)])
        store.update_rule = AsyncMock(side_effect=RuleStoreError("read-only database"))

        with caplog.at_level(logging.ERROR):
            summary = await scheduler.run_once(now=NOW)

        assert len(sink.calls) == 1
        assert summary["errors"][0]["stage"] == "write_back"
        assert "Failed to record last run" in caplog.text

    @pytest.mark.asyncio
    async def test_malformed_rule_logged_once_and_skipped(self, caplog):
        rules = [
            overdue_rule(id="broken", name="Broken", schedule={"frequency": "daily", "time": "nine"}),
            overdue_rule(id="good", name="Good", conditions={}),
        ]
        scheduler, store, sink = build_scheduler(rules, [make_transaction(due_in_days=-1)])

        with caplog.at_level(logging.ERROR):
            await scheduler.run_once(now=NOW)
            await scheduler.run_once(now=NOW + timedelta(days=1))

        assert caplog.text.count("unusable schedule") == 1
        assert [c[0] for c in sink.calls] == ["good", "good"]
        assert (await store.get_rule("broken")).last_run is None
        assert scheduler.get_status()["malformed_rules"] == ["broken"]

    @pytest.mark.asyncio
    async def test_rule_without_schedule_is_malformed(self):
        scheduler, store, sink = build_scheduler([overdue_rule(schedule=None)], [make_transaction(due_in_days=-1)])

        summary = await scheduler.run_once(now=NOW)

        assert sink.calls == []
        assert summary["errors"] == []


# =============================================================================
# On demand
# =============================================================================

class TestOnDemand:
    """Manual checks, previews, test notifications and status."""

    @pytest.mark.asyncio
    async def test_concurrent_run_once_calls_fire_once(self):
        scheduler, store, sink = build_scheduler([overdue_rule()], [make_transaction(due_in_days=-5)])

        await asyncio.gather(
            scheduler.run_once(now=NOW, run_type="scheduled"),
            scheduler.run_once(now=NOW, run_type="manual"),
        )

        assert len(sink.calls) == 1

    @pytest.mark.asyncio
    async def test_current_alerts_sorted(self):
        scheduler, _, _ = build_scheduler(
            [],
            [make_transaction(id="soon", due_in_days=2), make_transaction(id="late", due_in_days=-3)],
        )

        alerts = await scheduler.current_alerts(now=NOW)

        assert [a.transaction_id for a in alerts] == ["late", "soon"]

    @pytest.mark.asyncio
    async def test_test_rule_does_not_touch_last_run(self):
        scheduler, store, sink = build_scheduler([overdue_rule()], [])

        result = await scheduler.test_rule("rule-1", now=NOW)

        assert result["success"] is True
        assert result["notification"]["customer_name"] == "Test Customer"
        assert result["notification"]["title"] == "Payment overdue: Test Customer"
        assert len(sink.calls) == 1
        assert (await store.get_rule("rule-1")).last_run is None

    @pytest.mark.asyncio
    async def test_test_rule_unknown_id(self):
        scheduler, _, _ = build_scheduler([], [])

        with pytest.raises(RuleNotFoundError):
            await scheduler.test_rule("missing")

    @pytest.mark.asyncio
    async def test_status_after_tick(self):
        scheduler, _, _ = build_scheduler([overdue_rule()], [])
        assert scheduler.get_status()["last_tick"] is None

        await scheduler.run_once(now=NOW)

        status = scheduler.get_status()
        assert status["last_tick"] == NOW.isoformat()
        assert status["last_summary"]["run_type"] == "scheduled"


class TestSetupApscheduler:
    """Tests for the APScheduler job registration."""

    def test_registers_interval_job(self):
        scheduler, _, _ = build_scheduler([], [])
        aps = MagicMock()

        setup_apscheduler(aps, scheduler, tick_minutes=5)

        args, kwargs = aps.add_job.call_args
        assert args == (scheduler.run_once, 'interval')
        assert kwargs["minutes"] == 5
        assert kwargs["id"] == JOB_ID
        assert kwargs["max_instances"] == 1
