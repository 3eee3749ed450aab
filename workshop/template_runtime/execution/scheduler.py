"""Trigger scheduler -- the poll / evaluate / fire loop.

One asyncio task per active trigger.  Each cycle:

1. Fetch the watched entity's current state from the ``SnapshotSource``.
2. Load the previous observation from the ``SnapshotStore`` and persist
   the new one (so a restart resumes diffing where it left off).
3. The very first observation only establishes a baseline.
4. Evaluate the trigger's conditions over ``(current, previous)``.
5. Respect ``min_trigger_interval_ms`` since the last fire.
6. Either queue a pending approval (``requires_approval``, persisted with
   the snapshot and restored on start) or dispatch the execution as a
   background task, bounded by a per-trigger semaphore
   (``max_concurrent_workspaces``) and a system-wide one.  A slot is held
   until a timed-out provisioner call has finished too.

Stopping a trigger cancels its poll loop only.  Dispatched executions are
never cancelled by the scheduler; they finish on their own or hit the
trigger's ``timeout_ms``.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from loguru import logger

from workshop.template_runtime.execution.conditions import evaluate_conditions
from workshop.template_runtime.models.enums import AuditCategory, TriggerStatus
from workshop.template_runtime.models.snapshot import ObservedSnapshot, PendingApproval

if TYPE_CHECKING:
    from workshop.template_runtime.audit import Auditor
    from workshop.template_runtime.execution.orchestrator import TemplateApplicationOrchestrator
    from workshop.template_runtime.execution.triggers import TriggerExecutor
    from workshop.template_runtime.models.results import TriggerExecutionResult
    from workshop.template_runtime.models.trigger import WorkspaceTrigger
    from workshop.template_runtime.sources import SnapshotSource
    from workshop.template_runtime.store.base import DefinitionStore
    from workshop.template_runtime.store.snapshots import SnapshotStore


class TriggerScheduler:
    """Runs the polling loops of all active triggers."""

    def __init__(
        self,
        triggers: DefinitionStore[WorkspaceTrigger],
        executor: TriggerExecutor,
        orchestrator: TemplateApplicationOrchestrator,
        source: SnapshotSource,
        snapshots: SnapshotStore,
        auditor: Auditor,
        *,
        max_concurrent_applications: int = 10,
        sync_interval: float = 30.0,
    ) -> None:
        self._triggers = triggers
        self._executor = executor
        self._orchestrator = orchestrator
        self._source = source
        self._snapshots = snapshots
        self._auditor = auditor
        self._sync_interval = sync_interval

        self._loops: dict[str, asyncio.Task[None]] = {}
        self._sync_task: asyncio.Task[None] | None = None
        self._dispatched: set[asyncio.Task[TriggerExecutionResult]] = set()
        self._pending: dict[str, PendingApproval] = {}
        self._last_fired: dict[str, datetime] = {}
        self._global_slots = asyncio.Semaphore(max_concurrent_applications)
        self._trigger_slots: dict[str, tuple[int, asyncio.Semaphore]] = {}

    # -- Lifecycle -------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._sync_task is not None

    async def start(self) -> None:
        """Start loops for all active triggers and keep them in sync with the store."""
        if self._sync_task is not None:
            return
        await self._restore_pending()
        await self.sync()
        self._sync_task = asyncio.create_task(self._sync_forever(), name="trigger-scheduler-sync")
        logger.info("Trigger scheduler started ({} active trigger(s))", len(self._loops))

    async def stop(self) -> None:
        """Cancel the sync task and every poll loop.  Dispatched executions keep running."""
        tasks = list(self._loops.values())
        if self._sync_task is not None:
            tasks.append(self._sync_task)
            self._sync_task = None
        self._loops.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Trigger scheduler stopped")

    async def sync(self) -> None:
        """Start loops for newly active triggers; stop loops of paused, disabled or deleted ones."""
        triggers = await self._triggers.list()
        active = {t.id for t in triggers if t.status == TriggerStatus.ACTIVE}
        for trigger_id in active - self._loops.keys():
            self.start_trigger(trigger_id)
        for trigger_id in self._loops.keys() - active:
            self.stop_trigger(trigger_id)

    def start_trigger(self, trigger_id: str) -> None:
        """Start the poll loop for *trigger_id* (no-op if already running)."""
        task = self._loops.get(trigger_id)
        if task is not None and not task.done():
            return
        self._loops[trigger_id] = asyncio.create_task(self._poll_forever(trigger_id), name=f"trigger-poll-{trigger_id}")
        logger.debug("Scheduler: started poll loop for {}", trigger_id)

    def stop_trigger(self, trigger_id: str) -> bool:
        """Cancel the poll loop for *trigger_id*.  Returns whether one was running."""
        task = self._loops.pop(trigger_id, None)
        if task is None:
            return False
        task.cancel()
        logger.debug("Scheduler: stopped poll loop for {}", trigger_id)
        return True

    async def forget(self, trigger_id: str) -> None:
        """Drop all scheduler state of a deleted trigger, including its snapshot."""
        self.stop_trigger(trigger_id)
        self._pending.pop(trigger_id, None)
        self._last_fired.pop(trigger_id, None)
        self._trigger_slots.pop(trigger_id, None)
        await self._snapshots.delete(trigger_id)

    def is_polling(self, trigger_id: str) -> bool:
        task = self._loops.get(trigger_id)
        return task is not None and not task.done()

    # -- Polling ---------------------------------------------------------------

    async def poll_once(self, trigger_id: str) -> bool:
        """Run one poll cycle for *trigger_id*.  Returns whether an execution was dispatched."""
        trigger = await self._triggers.get(trigger_id)
        if trigger is None or trigger.status != TriggerStatus.ACTIVE:
            return False
        try:
            return await self._poll(trigger)
        except Exception:
            logger.exception("Poll cycle failed for trigger {}", trigger_id)
            return False

    async def _poll(self, trigger: WorkspaceTrigger) -> bool:
        entity_id = trigger.context_listener.context_item_id
        state = await self._source.fetch(entity_id)
        if state is None:
            logger.debug("Scheduler: no state for {} (trigger={})", entity_id, trigger.id)
            return False

        previous = await self._snapshots.read(trigger.id)
        same_entity = previous is not None and previous.entity_id == entity_id
        current = ObservedSnapshot(
            trigger_id=trigger.id,
            entity_id=entity_id,
            state=state,
            pending_approval=previous.pending_approval if same_entity else None,
        )
        await self._snapshots.write(current)
        if previous is None or not same_entity:
            logger.debug("Scheduler: baseline established for trigger {}", trigger.id)
            return False

        if not evaluate_conditions(trigger.context_listener.trigger_conditions, state, previous.state):
            return False

        now = datetime.now(tz=UTC)
        last = self._last_fired.get(trigger.id, trigger.last_triggered)
        min_interval = timedelta(milliseconds=trigger.resource_limits.min_trigger_interval_ms)
        if last is not None and now - last < min_interval:
            logger.info("Scheduler: trigger {} matched within its minimum interval, skipping", trigger.id)
            return False

        if trigger.requires_approval:
            pending = PendingApproval(trigger_id=trigger.id, template_id=trigger.template_id, queued_at=now, state=state)
            self._pending[trigger.id] = pending
            self._last_fired[trigger.id] = now
            await self._snapshots.write(current.model_copy(update={"pending_approval": pending}))
            await self._auditor.emit(
                AuditCategory.TRIGGER,
                f"Trigger awaiting approval: {trigger.name}",
                template_id=trigger.template_id,
                trigger_id=trigger.id,
            )
            return False

        self._last_fired[trigger.id] = now
        self._dispatch(trigger, state, reason="condition_met")
        return True

    async def _poll_forever(self, trigger_id: str) -> None:
        try:
            while True:
                try:
                    trigger = await self._triggers.get(trigger_id)
                except Exception:
                    logger.exception("Scheduler: failed to load trigger {}", trigger_id)
                    await asyncio.sleep(self._sync_interval)
                    continue
                if trigger is None or trigger.status != TriggerStatus.ACTIVE:
                    logger.info("Scheduler: trigger {} is no longer active, stopping its loop", trigger_id)
                    break
                try:
                    await self._poll(trigger)
                except Exception:
                    logger.exception("Poll cycle failed for trigger {}", trigger_id)
                await asyncio.sleep(trigger.context_listener.polling_interval_ms / 1000)
        finally:
            if self._loops.get(trigger_id) is asyncio.current_task():
                del self._loops[trigger_id]

    async def _sync_forever(self) -> None:
        while True:
            await asyncio.sleep(self._sync_interval)
            try:
                await self.sync()
            except Exception:
                logger.exception("Scheduler: sync with the trigger store failed")

    # -- Approvals -------------------------------------------------------------

    async def _restore_pending(self) -> None:
        """Reload approvals queued before a restart from the snapshot store."""
        for trigger in await self._triggers.list():
            if trigger.id in self._pending:
                continue
            snapshot = await self._snapshots.read(trigger.id)
            if snapshot is not None and snapshot.pending_approval is not None:
                self._pending[trigger.id] = snapshot.pending_approval
        if self._pending:
            logger.info("Scheduler: restored {} pending approval(s)", len(self._pending))

    def pending_approvals(self) -> list[PendingApproval]:
        return sorted(self._pending.values(), key=lambda p: p.queued_at)

    async def approve(self, trigger_id: str) -> bool:
        """Fire a queued approval with the state that matched.  Returns ``False`` if none is pending."""
        pending = self._pending.pop(trigger_id, None)
        snapshot = await self._snapshots.read(trigger_id)
        if pending is None and snapshot is not None:
            pending = snapshot.pending_approval
        if pending is None:
            return False
        if snapshot is not None and snapshot.pending_approval is not None:
            await self._snapshots.write(snapshot.model_copy(update={"pending_approval": None}))
        trigger = await self._triggers.get(trigger_id)
        if trigger is None:
            logger.warning("Scheduler: approved trigger {} no longer exists", trigger_id)
            return False
        self._dispatch(trigger, pending.state, reason="approved")
        return True

    # -- Dispatch --------------------------------------------------------------

    def _dispatch(self, trigger: WorkspaceTrigger, state: dict[str, Any], *, reason: str) -> None:
        task = asyncio.create_task(self._run(trigger, state, reason), name=f"trigger-run-{trigger.id}")
        self._dispatched.add(task)
        task.add_done_callback(self._dispatched.discard)

    async def _run(self, trigger: WorkspaceTrigger, state: dict[str, Any], reason: str) -> TriggerExecutionResult:
        async with self._slots_for(trigger), self._global_slots:
            result = await self._executor.execute(trigger.id, state, reason=reason)
            # A provisioner call that outlived timeout_ms keeps its slot until it finishes.
            await self._orchestrator.wait_for_detached(trigger_id=trigger.id)
            return result

    def _slots_for(self, trigger: WorkspaceTrigger) -> asyncio.Semaphore:
        limit = trigger.resource_limits.max_concurrent_workspaces
        current = self._trigger_slots.get(trigger.id)
        if current is None or current[0] != limit:
            current = (limit, asyncio.Semaphore(limit))
            self._trigger_slots[trigger.id] = current
        return current[1]

    @property
    def in_flight(self) -> int:
        return len(self._dispatched)

    async def wait_until_drained(self, timeout: float | None = None) -> bool:
        """Wait for dispatched executions.  Returns ``False`` if *timeout* expired first."""
        if not self._dispatched:
            return True
        _, still_running = await asyncio.wait(set(self._dispatched), timeout=timeout)
        if still_running:
            logger.warning("Scheduler: {} dispatched execution(s) still running after {}s", len(still_running), timeout)
            return False
        return True
