"""Per-table, per-stage outcomes of a migration run."""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    INTROSPECT = "introspect"
    CREATE = "create"
    TRANSFER = "transfer"
    CONSTRAIN = "constrain"
    INDEX = "index"


class TableState(str, Enum):
    PENDING = "pending"
    CREATED = "created"
    DATA_TRANSFERRED = "data_transferred"
    CONSTRAINED = "constrained"
    INDEXED = "indexed"
    FAILED = "failed"


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


# State reached when a stage completes for a table.
_STAGE_STATES = {
    Stage.CREATE: TableState.CREATED,
    Stage.TRANSFER: TableState.DATA_TRANSFERRED,
    Stage.CONSTRAIN: TableState.CONSTRAINED,
    Stage.INDEX: TableState.INDEXED,
}

_STATE_RANK = {
    TableState.PENDING: 0,
    TableState.CREATED: 1,
    TableState.DATA_TRANSFERRED: 2,
    TableState.CONSTRAINED: 3,
    TableState.INDEXED: 4,
}


@dataclass
class StageOutcome:
    table: str
    stage: Stage
    status: OutcomeStatus
    reason: Optional[str] = None
    rows: Optional[int] = None


@dataclass
class MigrationReport:
    """Accumulates outcomes for one run.

    A table only moves forward through TableState; once failed it stays failed.
    """
    states: Dict[str, TableState] = field(default_factory=dict)
    outcomes: List[StageOutcome] = field(default_factory=list)
    aborted: Optional[str] = None

    def register(self, table: str) -> None:
        self.states.setdefault(table, TableState.PENDING)

    def state(self, table: str) -> TableState:
        return self.states.get(table, TableState.PENDING)

    def is_failed(self, table: str) -> bool:
        return self.state(table) == TableState.FAILED

    def active_tables(self, tables) -> List[str]:
        return [t for t in tables if not self.is_failed(t)]

    def _advance(self, table: str, stage: Stage) -> None:
        current = self.state(table)
        target = _STAGE_STATES.get(stage)
        if current == TableState.FAILED or target is None:
            return
        if _STATE_RANK[target] > _STATE_RANK[current]:
            self.states[table] = target

    def record(self, table, stage, status, reason=None, rows=None) -> StageOutcome:
        outcome = StageOutcome(table, Stage(stage), OutcomeStatus(status), reason, rows)
        self.outcomes.append(outcome)
        self.register(table)
        return outcome

    def success(self, table, stage, reason=None, rows=None) -> StageOutcome:
        outcome = self.record(table, stage, OutcomeStatus.SUCCESS, reason, rows)
        self._advance(table, outcome.stage)
        return outcome

    def skipped(self, table, stage, reason) -> StageOutcome:
        outcome = self.record(table, stage, OutcomeStatus.SKIPPED, reason)
        self._advance(table, outcome.stage)
        return outcome

    def failed(self, table, stage, reason, exclude=False, rows=None) -> StageOutcome:
        """Record a failure. With exclude=True the table drops out of later stages."""
        outcome = self.record(table, stage, OutcomeStatus.FAILED, reason, rows)
        if exclude:
            self.states[table] = TableState.FAILED
        else:
            self._advance(table, outcome.stage)
        return outcome

    def outcomes_for(self, table: str, stage=None) -> List[StageOutcome]:
        return [
            o for o in self.outcomes
            if o.table == table and (stage is None or o.stage == Stage(stage))
        ]

    @property
    def failed_entries(self) -> List[StageOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.FAILED]

    @property
    def succeeded(self) -> bool:
        return self.aborted is None and not self.failed_entries

    def to_frame(self) -> pd.DataFrame:
        columns = ["table", "stage", "status", "reason", "rows"]
        records = [
            {
                "table": o.table,
                "stage": o.stage.value,
                "status": o.status.value,
                "reason": o.reason,
                "rows": o.rows,
            }
            for o in self.outcomes
        ]
        return pd.DataFrame(records, columns=columns)

    def summary(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in OutcomeStatus}
        for o in self.outcomes:
            counts[o.status.value] += 1
        counts["tables"] = len(self.states)
        counts["tables_failed"] = sum(1 for s in self.states.values() if s == TableState.FAILED)
        return counts

    def log_summary(self) -> None:
        summary = self.summary()
        if self.aborted:
            logger.error(f"Migration aborted: {self.aborted}")
        logger.info(
            f"Migration report: {summary['tables']} tables, {summary['success']} succeeded, "
            f"{summary['skipped']} skipped, {summary['failed']} failed"
        )
        for o in self.failed_entries:
            logger.error(f"{o.stage.value} failed for {o.table}: {o.reason}")

    def write(self, path) -> Path:
        """Write the report as CSV, or JSON when the path ends in .json."""
        path = Path(path)
        frame = self.to_frame()
        if path.suffix.lower() == ".json":
            payload = {
                "aborted": self.aborted,
                "summary": self.summary(),
                "states": {t: s.value for t, s in self.states.items()},
                "outcomes": json.loads(frame.to_json(orient="records")),
            }
            path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        else:
            frame.to_csv(path, index=False)
        logger.info(f"Report written to {path}")
        return path
