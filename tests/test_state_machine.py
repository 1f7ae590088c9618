"""Tests for the payroll close stage transition table."""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from payroll_close.services.state_machine import (
    STAGE_LABELS,
    PayrollStage,
    PipelineStateMachine,
    StageOperation,
    StageViolationError,
)


class TestTransitionTable:
    """Test the preconditions and targets of each operation."""

    def test_save_and_recall_allowed_at_any_stage(self):
        """Save and recall have no precondition."""
        for stage in (0, 1, 666, 775, 776, 888, 889, 998, 999, 12345):
            assert PipelineStateMachine.can_apply("save", stage) is True
            assert PipelineStateMachine.can_apply("recall", stage) is True

    def test_targets(self):
        """Each operation lands on its fixed target stage."""
        assert PipelineStateMachine.next_stage("save", 0) == 666
        assert PipelineStateMachine.next_stage("personnel_report", 666) == 775
        assert PipelineStateMachine.next_stage("input_variable_report", 775) == 777
        assert PipelineStateMachine.next_stage("master_file_update", 777) == 888
        assert PipelineStateMachine.next_stage("backup", 888) == 889
        assert PipelineStateMachine.next_stage("restore", 889) == 888
        assert PipelineStateMachine.next_stage("calculate", 888) == 999
        assert PipelineStateMachine.next_stage("recall", 999) == 0

    def test_master_file_update_range(self):
        """Master-file update needs 777 <= stage < 888."""
        assert PipelineStateMachine.can_apply("master_file_update", 775) is False
        assert PipelineStateMachine.can_apply("master_file_update", 776) is False
        assert PipelineStateMachine.can_apply("master_file_update", 777) is True
        assert PipelineStateMachine.can_apply("master_file_update", 887) is True
        assert PipelineStateMachine.can_apply("master_file_update", 888) is False

    def test_master_file_update_accepts_undefined_stage_in_range(self):
        """An externally written 778 satisfies the range check."""
        assert PipelineStateMachine.is_defined(778) is False
        assert PipelineStateMachine.can_apply("master_file_update", 778) is True

    def test_backup_only_at_888(self):
        """Backup requires exactly 888."""
        assert PipelineStateMachine.can_apply("backup", 887) is False
        assert PipelineStateMachine.can_apply("backup", 888) is True
        assert PipelineStateMachine.can_apply("backup", 889) is False
        assert PipelineStateMachine.can_apply("backup", 999) is False

    def test_restore_from_889_up(self):
        """Restore requires stage >= 889, including after calculation."""
        assert PipelineStateMachine.can_apply("restore", 888) is False
        assert PipelineStateMachine.can_apply("restore", 889) is True
        assert PipelineStateMachine.can_apply("restore", 999) is True

    def test_calculate_range(self):
        """Calculate needs 888 <= stage < 999."""
        assert PipelineStateMachine.can_apply("calculate", 887) is False
        assert PipelineStateMachine.can_apply("calculate", 888) is True
        assert PipelineStateMachine.can_apply("calculate", 889) is True
        assert PipelineStateMachine.can_apply("calculate", 998) is True
        assert PipelineStateMachine.can_apply("calculate", 999) is False

    def test_report_stages(self):
        """Report operations walk 666 -> 775 -> 777."""
        assert PipelineStateMachine.can_apply("personnel_report", 0) is False
        assert PipelineStateMachine.can_apply("personnel_report", 666) is True
        assert PipelineStateMachine.can_apply("personnel_report", 775) is False
        assert PipelineStateMachine.can_apply("input_variable_report", 666) is False
        assert PipelineStateMachine.can_apply("input_variable_report", 775) is True
        assert PipelineStateMachine.can_apply("input_variable_report", 777) is False

    def test_allowed_operations_after_calculation(self):
        """At 999 only save, restore and recall remain."""
        allowed = PipelineStateMachine.allowed_operations(PayrollStage.CALCULATED)
        assert set(allowed) == {
            StageOperation.SAVE,
            StageOperation.RESTORE,
            StageOperation.RECALL,
        }

    def test_unknown_operation(self):
        """Unknown operation names are rejected."""
        with pytest.raises(ValueError):
            PipelineStateMachine.transition_for("approve")


class TestStageViolation:
    """Test rejected transitions."""

    def test_validate_raises_with_requirement(self):
        """validate() reports the operation, stage and requirement."""
        with pytest.raises(StageViolationError) as exc_info:
            PipelineStateMachine.validate("master_file_update", 775)

        err = exc_info.value
        assert err.operation == "master_file_update"
        assert err.current_stage == 775
        assert err.requirement == "requires stage ≥ 777 and < 888"
        assert "First Report Generated" in str(err)

    def test_requirement_strings(self):
        """Requirements are rendered from the table bounds."""
        assert PipelineStateMachine.transition_for("save").requirement == "any stage"
        assert PipelineStateMachine.transition_for("backup").requirement == "requires stage == 888"
        assert PipelineStateMachine.transition_for("restore").requirement == "requires stage ≥ 889"

    def test_reason_appended(self):
        err = StageViolationError("calculate", 888, "requires stage ≥ 888 and < 999", "race")
        assert str(err).endswith("; race")


class TestStageLabels:
    """Test stage descriptions."""

    def test_defined_labels(self):
        assert PipelineStateMachine.describe(0) == "Data Entry Open"
        assert PipelineStateMachine.describe(666) == "Data Entry Closed"
        assert PipelineStateMachine.describe(888) == "Update Completed"
        assert PipelineStateMachine.describe(999) == "Calculation Completed"

    def test_undefined_stage_is_representable(self):
        """Stage values outside the defined set describe themselves."""
        assert PipelineStateMachine.describe(998) == "Unknown Status (998)"
        assert PipelineStateMachine.is_defined(998) is False


# Operations allowed to move the stage backwards: save resets to 666,
# restore returns to 888, recall reopens data entry.
RESETTING_OPERATIONS = {StageOperation.SAVE, StageOperation.RESTORE, StageOperation.RECALL}

stage_operations = st.lists(st.sampled_from(list(StageOperation)), max_size=40)


class TestOperationSequences:
    """Invariants over arbitrary sequences of operations."""

    @given(start=st.sampled_from(sorted(STAGE_LABELS)), operations=stage_operations)
    @settings(max_examples=300)
    def test_stage_always_defined(self, start, operations):
        """From any defined stage, accepted operations only reach defined stages."""
        stage = start
        for operation in operations:
            if PipelineStateMachine.can_apply(operation, stage):
                stage = int(PipelineStateMachine.next_stage(operation, stage))
            assert PipelineStateMachine.is_defined(stage)

    @given(start=st.integers(min_value=-1, max_value=1200), operations=stage_operations)
    def test_rejection_leaves_stage(self, start, operations):
        """A rejected operation raises and the stage stays where it was."""
        stage = start
        for operation in operations:
            before = stage
            try:
                stage = int(PipelineStateMachine.next_stage(operation, stage))
            except StageViolationError as exc:
                assert exc.current_stage == before
                assert stage == before
                assert operation not in PipelineStateMachine.allowed_operations(before)

    @given(operations=stage_operations)
    def test_forward_operations_increase_stage(self, operations):
        """Except save, restore and recall, every accepted operation moves forward."""
        stage = int(PayrollStage.OPEN)
        for operation in operations:
            if not PipelineStateMachine.can_apply(operation, stage):
                continue
            reached = int(PipelineStateMachine.next_stage(operation, stage))
            if operation not in RESETTING_OPERATIONS:
                assert reached > stage
            elif operation is StageOperation.RESTORE:
                assert (stage, reached) in {(889, 888), (999, 888)}
            stage = reached
