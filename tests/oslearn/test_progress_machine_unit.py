"""Unit tests for the curriculum stage state machine."""

import asyncio

import pytest

from oslearn.progress import (
    InMemoryProgressStore,
    InvalidStageTransitionError,
    ModuleProgress,
    ModuleStateMachine,
    StageStatus,
)
from oslearn.progress.machine import can_advance, can_jump


def run_async(coro):
    return asyncio.run(coro)


def _make_machine(progress=None):
    store = InMemoryProgressStore(progress)
    machine = ModuleStateMachine(store)
    run_async(machine.load())
    return machine, store


class TestLoad:
    def test_fresh_start_is_setup(self):
        machine, _ = _make_machine()

        assert machine.current_stage == 0
        assert machine.progress.completed_stages == set()

    def test_restores_persisted_progress_verbatim(self):
        saved = ModuleProgress(current_stage=3, completed_stages={1, 2})

        machine, _ = _make_machine(saved)

        assert machine.current_stage == 3
        assert machine.progress.completed_stages == {1, 2}


class TestAdvance:
    def test_linear_walkthrough(self):
        machine, store = _make_machine()

        for stage in (1, 2, 3, 4):
            run_async(machine.advance(stage))

        assert machine.current_stage == 4
        assert machine.progress.completed_stages == {1, 2, 3}
        assert store.record["current_stage"] == 4
        assert store.record["completed_stages"] == [1, 2, 3]

    def test_skip_is_rejected_without_changes(self):
        machine, store = _make_machine(
            ModuleProgress(current_stage=2, completed_stages={1})
        )

        with pytest.raises(InvalidStageTransitionError) as exc_info:
            run_async(machine.advance(4))

        assert exc_info.value.current_stage == 2
        assert exc_info.value.target_stage == 4
        assert machine.current_stage == 2
        assert machine.progress.completed_stages == {1}
        assert store.record["current_stage"] == 2

    def test_reaffirming_current_stage_marks_previous_complete(self):
        machine, _ = _make_machine(ModuleProgress(current_stage=2))

        run_async(machine.advance(2))

        assert machine.current_stage == 2
        assert machine.progress.completed_stages == {1}

    def test_advance_to_one_from_setup_completes_nothing(self):
        machine, _ = _make_machine()

        run_async(machine.advance(1))

        assert machine.progress.completed_stages == set()

    @pytest.mark.parametrize("stage", [-1, 5, 99])
    def test_out_of_range_rejected(self, stage):
        machine, _ = _make_machine()

        with pytest.raises(InvalidStageTransitionError):
            run_async(machine.advance(stage))

    def test_final_stage_stays_navigable(self):
        machine, _ = _make_machine(
            ModuleProgress(current_stage=4, completed_stages={1, 2, 3})
        )

        run_async(machine.advance(4))

        assert machine.current_stage == 4
        assert machine.contribution_unlocked


class TestJump:
    def test_jump_back_to_completed_stage(self):
        machine, store = _make_machine(
            ModuleProgress(current_stage=3, completed_stages={1, 2})
        )

        moved = run_async(machine.jump(1))

        assert moved is True
        assert machine.current_stage == 1
        assert machine.progress.completed_stages == {1, 2}
        assert store.record["current_stage"] == 1

    def test_jump_to_locked_stage_is_ignored(self):
        machine, store = _make_machine(
            ModuleProgress(current_stage=2, completed_stages={1})
        )

        moved = run_async(machine.jump(4))

        assert moved is False
        assert machine.current_stage == 2
        assert store.record["current_stage"] == 2

    def test_jump_to_setup_always_allowed(self):
        machine, _ = _make_machine(
            ModuleProgress(current_stage=2, completed_stages={1})
        )

        assert run_async(machine.jump(0)) is True
        assert machine.current_stage == 0

    def test_forward_again_after_jumping_back(self):
        machine, _ = _make_machine(
            ModuleProgress(current_stage=3, completed_stages={1, 2})
        )
        run_async(machine.jump(1))

        run_async(machine.advance(2))
        run_async(machine.advance(3))

        assert machine.current_stage == 3
        assert machine.progress.completed_stages == {1, 2}


    def test_skip_after_jumping_back_is_rejected(self):
        machine, store = _make_machine(
            ModuleProgress(current_stage=4, completed_stages={1, 2, 3})
        )
        run_async(machine.jump(1))

        with pytest.raises(InvalidStageTransitionError):
            run_async(machine.advance(3))

        assert machine.current_stage == 1
        assert store.record["current_stage"] == 1

    def test_advancing_backwards_is_rejected(self):
        machine, store = _make_machine(
            ModuleProgress(current_stage=3, completed_stages={1, 2})
        )

        with pytest.raises(InvalidStageTransitionError):
            run_async(machine.advance(2))

        assert machine.current_stage == 3
        assert store.record["current_stage"] == 3


class TestScenario:
    def test_fresh_store_advance_then_locked_jump(self):
        machine, _ = _make_machine()

        run_async(machine.advance(1))

        assert machine.current_stage == 1
        assert run_async(machine.jump(3)) is False
        assert machine.current_stage == 1

    def test_setup_modules_jump_and_skip(self):
        machine, _ = _make_machine()

        run_async(machine.complete_setup("content-key", "ghp_token"))
        run_async(machine.advance(2))
        assert machine.current_stage == 2
        assert machine.progress.completed_stages == {1}

        assert run_async(machine.jump(1)) is True
        assert machine.current_stage == 1

        assert run_async(machine.jump(3)) is False
        assert machine.current_stage == 1


class TestSetupAndSelections:
    def test_complete_setup_stores_credentials_and_unlocks_stage_one(self):
        machine, store = _make_machine()

        run_async(machine.complete_setup(" key ", " ghp_token "))

        assert machine.current_stage == 1
        assert machine.session.credentials.content_key == "key"
        assert machine.session.credentials.hosting_token == "ghp_token"
        assert store.record["credentials"]["hosting_token"] == "ghp_token"

    def test_complete_setup_requires_both_credentials(self):
        machine, _ = _make_machine()

        with pytest.raises(ValueError):
            run_async(machine.complete_setup("key", "  "))

        assert machine.current_stage == 0

    def test_complete_setup_later_keeps_stage(self):
        machine, _ = _make_machine(
            ModuleProgress(current_stage=3, completed_stages={1, 2})
        )

        run_async(machine.complete_setup("key", "new-token"))

        assert machine.current_stage == 3
        assert machine.session.credentials.hosting_token == "new-token"

    def test_select_updates_only_given_tags(self):
        machine, store = _make_machine()

        run_async(machine.select(interest="devops"))
        selections = run_async(machine.select(skill_level="total-beginner"))

        assert selections.interest == "devops"
        assert selections.skill_level == "total-beginner"
        assert selections.git_experience == ""
        assert store.record["selections"]["interest"] == "devops"


class TestOverview:
    def test_statuses(self):
        machine, _ = _make_machine(
            ModuleProgress(current_stage=2, completed_stages={1})
        )

        statuses = [view.status for view in machine.overview()]

        assert statuses == [
            StageStatus.COMPLETED,
            StageStatus.COMPLETED,
            StageStatus.ACTIVE,
            StageStatus.UNLOCKED,
            StageStatus.LOCKED,
        ]

    def test_titles_present(self):
        machine, _ = _make_machine()

        assert machine.overview()[4].title == "Your First Pull Request"
        assert machine.stage_status(0) == StageStatus.ACTIVE


class TestReset:
    def test_reset_forgets_everything(self):
        machine, store = _make_machine(
            ModuleProgress(current_stage=3, completed_stages={1, 2})
        )

        run_async(machine.reset())

        assert machine.current_stage == 0
        assert store.record is None


class TestPredicates:
    def test_can_advance(self):
        progress = ModuleProgress(current_stage=2, completed_stages={1})

        assert can_advance(progress, 2)
        assert can_advance(progress, 3)
        assert not can_advance(progress, 4)
        assert not can_advance(progress, 1)

    def test_can_jump(self):
        progress = ModuleProgress(current_stage=2, completed_stages={1})

        assert can_jump(progress, 0)
        assert can_jump(progress, 1)
        assert can_jump(progress, 2)
        assert not can_jump(progress, 3)
