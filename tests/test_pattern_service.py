"""Tests for horizon upkeep, completion follow-ups and pattern deletion."""
import asyncio
from datetime import date, datetime, timedelta

import pytest

from planner_recurrence.errors import PatternNotFoundError
from planner_recurrence.models.task import STATUS_COMPLETE
from planner_recurrence.services.migration_service import MigrationService
from planner_recurrence.services.pattern_service import PatternService

from tests.conftest import NOW, TODAY, legacy_task


def migrated_pattern(store, recurrence, scheduled=TODAY):
    """Migrate one legacy task and return its pattern."""
    async def run():
        await store.add_task(legacy_task("user-1", recurrence, scheduled=scheduled))
        await MigrationService(store, now=NOW).run()
        return (await store.list_active_patterns("user-1"))[0]
    return asyncio.run(run())


class TestExtendHorizon:

    def test_extends_past_generated_until(self, store):
        pattern = migrated_pattern(store, {"type": "daily"})
        service = PatternService(store, now=NOW)

        created = asyncio.run(service.extend_horizon(pattern.id, date(2026, 7, 1)))

        refreshed = asyncio.run(store.get_pattern(pattern.id))
        assert refreshed.generated_until_day == date(2026, 7, 1) + timedelta(days=89)
        # 2026-05-30 through 2026-09-28
        assert len(created) == 122
        assert len(asyncio.run(store.find_pattern_instances(pattern.id))) == 90 + 122

    def test_noop_inside_horizon(self, store):
        pattern = migrated_pattern(store, {"type": "daily"})
        service = PatternService(store, now=NOW)
        assert asyncio.run(service.extend_horizon(pattern.id, date(2026, 4, 1))) == []

    def test_dry_run_writes_nothing(self, store):
        pattern = migrated_pattern(store, {"type": "daily"})
        writes_before = store.metrics.writes
        service = PatternService(store, dry_run=True, now=NOW)

        created = asyncio.run(service.extend_horizon(pattern.id, date(2026, 7, 1)))

        assert len(created) == 122
        assert store.metrics.writes == writes_before
        assert asyncio.run(store.get_pattern(pattern.id)).generated_until_day == date(2026, 5, 29)

    def test_unknown_pattern(self, store):
        service = PatternService(store, now=NOW)
        with pytest.raises(PatternNotFoundError):
            asyncio.run(service.extend_horizon("missing", date(2026, 7, 1)))


class TestRefreshPatterns:

    def test_advances_to_todays_horizon(self, store):
        pattern = migrated_pattern(store, {"type": "daily"})
        service = PatternService(store, now=NOW + timedelta(days=10))

        summary = asyncio.run(service.refresh_patterns())

        assert summary.patterns_checked == 1
        assert summary.patterns_extended == 1
        assert summary.instances_generated == 10
        assert summary.exit_code == 0
        refreshed = asyncio.run(store.get_pattern(pattern.id))
        assert refreshed.generated_until_day == date(2026, 6, 8)

        again = asyncio.run(service.refresh_patterns())
        assert again.patterns_extended == 0
        assert again.instances_generated == 0

    def test_dry_run_summary_is_prefixed(self, store):
        migrated_pattern(store, {"type": "daily"})
        service = PatternService(store, dry_run=True, now=NOW + timedelta(days=10))

        summary = asyncio.run(service.refresh_patterns())

        assert summary.instances_generated == 10
        assert all(line.startswith("[DRY-RUN] ") for line in summary.render().splitlines())

    def test_corrupt_pattern_does_not_stop_refresh(self, store):
        async def setup():
            await store.add_task(legacy_task("user-1", {"type": "daily"}, scheduled=TODAY))
            await store.add_task(legacy_task("user-2", {"type": "daily"}, scheduled=TODAY))
            await MigrationService(store, now=NOW).run()
            return (await store.list_active_patterns("user-1"))[0], (await store.list_active_patterns("user-2"))[0]
        bad, healthy = asyncio.run(setup())
        asyncio.run(store.update_pattern(bad.id, {"type": "custom"}))
        service = PatternService(store, now=NOW + timedelta(days=10))

        summary = asyncio.run(service.refresh_patterns())

        assert summary.patterns_checked == 2
        assert summary.patterns_extended == 1
        assert summary.instances_generated == 10
        assert len(summary.errors) == 1
        assert summary.errors[0].startswith(f"Failed to refresh pattern {bad.id}: ")
        assert summary.exit_code == 1
        assert asyncio.run(store.get_pattern(healthy.id)).generated_until_day == date(2026, 6, 8)


class TestInstanceCompleted:

    def test_creates_next_after_completion_instance(self, store):
        pattern = migrated_pattern(store, {"type": "afterCompletion", "daysAfterCompletion": 3})
        service = PatternService(store, now=datetime(2026, 3, 2, 10, 0))

        next_task = asyncio.run(service.handle_instance_completed(
            pattern.active_instance_id, completed_at=datetime(2026, 3, 2, 9, 0)
        ))

        assert next_task is not None
        assert next_task.scheduled_date.date() == date(2026, 3, 5)
        assert next_task.recurring_pattern_id == pattern.id
        completed = asyncio.run(store.get_task(pattern.active_instance_id))
        assert completed.status == STATUS_COMPLETE
        assert asyncio.run(store.get_pattern(pattern.id)).active_instance_id == next_task.id

    def test_calendar_patterns_do_not_react(self, store):
        pattern = migrated_pattern(store, {"type": "daily"})
        instance = asyncio.run(store.find_pattern_instances(pattern.id))[0]
        service = PatternService(store, now=NOW)
        assert asyncio.run(service.handle_instance_completed(instance.id)) is None

    def test_task_without_pattern(self, store):
        task = legacy_task("user-1", None)
        asyncio.run(store.add_task(task))
        service = PatternService(store, now=NOW)
        assert asyncio.run(service.handle_instance_completed(task.id)) is None


class TestDeletePattern:

    def test_soft_deletes_pattern_and_instances(self, store):
        pattern = migrated_pattern(store, {"type": "daily"})
        service = PatternService(store, now=NOW)

        deleted = asyncio.run(service.delete_pattern(pattern.id, delete_instances=True))

        assert deleted == 90
        assert asyncio.run(store.find_pattern_instances(pattern.id, include_deleted=False)) == []
        assert asyncio.run(store.get_pattern(pattern.id)).deleted_at is not None
        assert asyncio.run(store.list_active_patterns()) == []
        with pytest.raises(PatternNotFoundError):
            asyncio.run(service.delete_pattern(pattern.id))

    def test_keeps_instances_by_default(self, store):
        pattern = migrated_pattern(store, {"type": "daily"})
        service = PatternService(store, now=NOW)

        assert asyncio.run(service.delete_pattern(pattern.id)) == 0
        assert len(asyncio.run(store.find_pattern_instances(pattern.id, include_deleted=False))) == 90
