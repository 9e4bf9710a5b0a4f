"""Summaries returned by the periodic scheduler and migration cycles."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class SchedulerCycleReport:
    started_at: datetime
    assets_scanned: int = 0
    trainings_launched: int = 0
    inferences_launched: int = 0
    launch_failures: int = 0
    sync_failures: int = 0
    models_refreshed: int = 0
    forecast_rows_ingested: int = 0
    assets_failed: int = 0
    updated_pipelines: List[str] = field(default_factory=list)
    skipped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        return data


@dataclass
class MigrationCycleReport:
    started_at: datetime
    assets_processed: int = 0
    assets_failed: int = 0
    assets_aborted: int = 0
    rows_published: int = 0
    budget_exhausted: bool = False
    skipped: bool = False
    updated_pipelines: List[str] = field(default_factory=list)
    finished_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        return data
