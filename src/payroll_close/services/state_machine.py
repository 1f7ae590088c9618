"""Payroll close pipeline stages with a single transition table."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum


class PayrollStage(IntEnum):
    """Stage codes of the monthly close, in pipeline order."""

    OPEN = 0
    SAVED = 666
    REPORT1 = 775
    REPORT2 = 777
    MASTER_UPDATED = 888
    BACKED_UP = 889
    CALCULATED = 999


STAGE_LABELS: dict[int, str] = {
    PayrollStage.OPEN: "Data Entry Open",
    PayrollStage.SAVED: "Data Entry Closed",
    PayrollStage.REPORT1: "First Report Generated",
    PayrollStage.REPORT2: "Two Reports Generated",
    PayrollStage.MASTER_UPDATED: "Update Completed",
    PayrollStage.BACKED_UP: "Backup Completed",
    PayrollStage.CALCULATED: "Calculation Completed",
}


class StageOperation(str, Enum):
    """Operations that move the stage cursor."""

    SAVE = "save"
    PERSONNEL_REPORT = "personnel_report"
    INPUT_VARIABLE_REPORT = "input_variable_report"
    MASTER_FILE_UPDATE = "master_file_update"
    BACKUP = "backup"
    RESTORE = "restore"
    CALCULATE = "calculate"
    RECALL = "recall"


@dataclass(frozen=True)
class StageTransition:
    """One row of the transition table.

    ``min_stage`` is inclusive and ``max_stage`` exclusive; ``None`` leaves
    that side unbounded.
    """

    operation: StageOperation
    target: PayrollStage
    module: str
    action: str
    min_stage: int | None = None
    max_stage: int | None = None

    def permits(self, stage: int) -> bool:
        if self.min_stage is not None and stage < self.min_stage:
            return False
        if self.max_stage is not None and stage >= self.max_stage:
            return False
        return True

    @property
    def requirement(self) -> str:
        """Human-readable precondition."""
        low = None if self.min_stage is None else int(self.min_stage)
        high = None if self.max_stage is None else int(self.max_stage)
        if low is None and high is None:
            return "any stage"
        if low is not None and high == low + 1:
            return f"requires stage == {low}"
        if high is None:
            return f"requires stage ≥ {low}"
        if low is None:
            return f"requires stage < {high}"
        return f"requires stage ≥ {low} and < {high}"


class StageViolationError(Exception):
    """Raised when an operation's stage precondition is not met."""

    def __init__(self, operation: str, current_stage: int, requirement: str, reason: str | None = None):
        self.operation = operation
        self.current_stage = current_stage
        self.requirement = requirement
        self.reason = reason
        msg = (
            f"Cannot run '{operation}' at stage {current_stage} "
            f"({PipelineStateMachine.describe(current_stage)}): {requirement}"
        )
        if reason:
            msg += f"; {reason}"
        super().__init__(msg)


class PipelineStateMachine:
    """Single source of truth for stage transitions.

    Transition table:
    - save: any → 666
    - personnel_report: 666 ≤ stage < 775 → 775
    - input_variable_report: 775 ≤ stage < 777 → 777
    - master_file_update: 777 ≤ stage < 888 → 888
    - backup: stage == 888 → 889
    - restore: stage ≥ 889 → 888
    - calculate: 888 ≤ stage < 999 → 999
    - recall: any → 0
    """

    TRANSITIONS: dict[StageOperation, StageTransition] = {
        StageOperation.SAVE: StageTransition(
            StageOperation.SAVE, PayrollStage.SAVED, "FileUpdate", "SavePayrollFiles"
        ),
        StageOperation.PERSONNEL_REPORT: StageTransition(
            StageOperation.PERSONNEL_REPORT,
            PayrollStage.REPORT1,
            "FileUpdate",
            "PersonnelReport",
            min_stage=PayrollStage.SAVED,
            max_stage=PayrollStage.REPORT1,
        ),
        StageOperation.INPUT_VARIABLE_REPORT: StageTransition(
            StageOperation.INPUT_VARIABLE_REPORT,
            PayrollStage.REPORT2,
            "FileUpdate",
            "InputVariableReport",
            min_stage=PayrollStage.REPORT1,
            max_stage=PayrollStage.REPORT2,
        ),
        StageOperation.MASTER_FILE_UPDATE: StageTransition(
            StageOperation.MASTER_FILE_UPDATE,
            PayrollStage.MASTER_UPDATED,
            "FileUpdate",
            "MasterFileUpdates",
            min_stage=PayrollStage.REPORT2,
            max_stage=PayrollStage.MASTER_UPDATED,
        ),
        StageOperation.BACKUP: StageTransition(
            StageOperation.BACKUP,
            PayrollStage.BACKED_UP,
            "PayrollCalc",
            "Backup",
            min_stage=PayrollStage.MASTER_UPDATED,
            max_stage=PayrollStage.MASTER_UPDATED + 1,
        ),
        StageOperation.RESTORE: StageTransition(
            StageOperation.RESTORE,
            PayrollStage.MASTER_UPDATED,
            "PayrollCalc",
            "RestoreBackup",
            min_stage=PayrollStage.BACKED_UP,
        ),
        StageOperation.CALCULATE: StageTransition(
            StageOperation.CALCULATE,
            PayrollStage.CALCULATED,
            "PayrollCalc",
            "Calculation",
            min_stage=PayrollStage.MASTER_UPDATED,
            max_stage=PayrollStage.CALCULATED,
        ),
        StageOperation.RECALL: StageTransition(
            StageOperation.RECALL, PayrollStage.OPEN, "FileUpdate", "RecallPayrollFiles"
        ),
    }

    @classmethod
    def transition_for(cls, operation: StageOperation | str) -> StageTransition:
        """Look up the table row for an operation."""
        return cls.TRANSITIONS[StageOperation(operation)]

    @classmethod
    def can_apply(cls, operation: StageOperation | str, stage: int) -> bool:
        """Check whether an operation is allowed at a stage."""
        return cls.transition_for(operation).permits(stage)

    @classmethod
    def validate(cls, operation: StageOperation | str, stage: int) -> StageTransition:
        """Validate an operation, raising StageViolationError if not allowed."""
        transition = cls.transition_for(operation)
        if not transition.permits(stage):
            raise StageViolationError(transition.operation.value, stage, transition.requirement)
        return transition

    @classmethod
    def next_stage(cls, operation: StageOperation | str, stage: int) -> PayrollStage:
        """Stage reached by applying an operation at ``stage``."""
        return cls.validate(operation, stage).target

    @classmethod
    def allowed_operations(cls, stage: int) -> list[StageOperation]:
        """Operations whose precondition holds at ``stage``."""
        return [op for op, transition in cls.TRANSITIONS.items() if transition.permits(stage)]

    @classmethod
    def is_defined(cls, stage: int) -> bool:
        """Check if a raw stage value is one of the defined codes."""
        return stage in STAGE_LABELS

    @classmethod
    def describe(cls, stage: int) -> str:
        """Label for a stage value, including undefined ones."""
        return STAGE_LABELS.get(stage, f"Unknown Status ({stage})")
