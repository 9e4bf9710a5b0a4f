"""Use cases that queue scheduler and migration cycles on demand."""

from assetcast.application.dtos.pipeline_dto import CycleDispatchDTO
from assetcast.domain.ports.cycle_dispatcher import ICycleDispatcher
from assetcast.shared import get_logger

logger = get_logger(__name__)


class TriggerSchedulerCycleUseCase:
    def __init__(self, cycle_dispatcher: ICycleDispatcher) -> None:
        self._dispatcher = cycle_dispatcher

    async def execute(self) -> CycleDispatchDTO:
        task_id = await self._dispatcher.dispatch_scheduler_cycle()
        logger.info("cycle.dispatched", cycle="scheduler", task_id=task_id)
        return CycleDispatchDTO(cycle="scheduler", task_id=task_id)


class TriggerMigrationCycleUseCase:
    def __init__(self, cycle_dispatcher: ICycleDispatcher) -> None:
        self._dispatcher = cycle_dispatcher

    async def execute(self) -> CycleDispatchDTO:
        task_id = await self._dispatcher.dispatch_migration_cycle()
        logger.info("cycle.dispatched", cycle="migration", task_id=task_id)
        return CycleDispatchDTO(cycle="migration", task_id=task_id)
