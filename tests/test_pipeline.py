# tests/test_pipeline.py

from __future__ import annotations

import json

import pytest

from aitas.core.personality import Personality
from aitas.core.preferences import save_personality, save_review_weights
from aitas.core.state import AppState
from aitas.pipeline.review import compute_overall_score
from aitas.storage.models import (
    PERSPECTIVES,
    CategorySource,
    ClassificationStatus,
    PortfolioType,
    RescheduleReason,
    ReviewPerspective,
    ReviewWeights,
)

from .fakes import FakeReasoner


def _review_json(necessity, feasibility, decomposition, efficiency, subtasks=None) -> str:
    decomp = {"score": decomposition, "summary": "split it"}
    if subtasks is not None:
        decomp["suggestedSubTasks"] = subtasks
    return json.dumps(
        {
            "necessity": {"score": necessity, "summary": "needed", "suggestion": "keep it"},
            "feasibility": {"score": feasibility, "summary": "doable"},
            "decomposition": decomp,
            "efficiency": {"score": efficiency, "summary": "fine"},
        }
    )


@pytest.mark.asyncio
async def test_unclassifiable_task_falls_back_to_default_category(state: AppState, categories) -> None:
    task_id = state.store.add_task(title="Buy groceries")

    await state.pipeline.run(task_id, "Buy groceries")

    task = state.store.get_task(task_id)
    assert task is not None
    assert task.category_id == categories["Misc"].id
    assert task.category_source == CategorySource.FALLBACK
    assert task.classification_status == ClassificationStatus.COMPLETED
    assert task.review is not None
    assert task.review.overall_score == 50


@pytest.mark.asyncio
async def test_existing_category_and_clamped_review(state: AppState, reasoner: FakeReasoner, categories) -> None:
    work = categories["Work"]
    reasoner.classify = f'```json\n{{"action": "existing", "categoryId": "{work.id}", "confidence": "high"}}\n```'
    reasoner.review = "Sure! " + _review_json(80, 120, -5, 60, subtasks=["Open laptop", 3, "Write intro"])
    task_id = state.store.add_task(title="Quarterly report")

    result = await state.pipeline.run(task_id)

    assert result is not None
    assert result.feasibility.score == 100
    assert result.decomposition.score == 0
    assert result.decomposition.suggested_subtasks == ["Open laptop", "Write intro"]
    assert result.overall_score == 60  # (80 + 100 + 0 + 60) / 4

    task = state.store.get_task(task_id)
    assert task is not None
    assert task.category_id == work.id
    assert task.category_source == CategorySource.INFERRED
    assert task.review is not None
    assert task.review.to_dict() == result.to_dict()

    assert [c.timeout for c in reasoner.classify_calls] == [5.0]
    assert [c.timeout for c in reasoner.review_calls] == [10.0]


@pytest.mark.asyncio
async def test_category_resolved_by_name_when_id_is_wrong(state: AppState, reasoner: FakeReasoner, categories) -> None:
    reasoner.classify = '{"action": "existing", "categoryId": "Hobby"}'
    task_id = state.store.add_task(title="Play guitar")

    await state.pipeline.run(task_id)

    task = state.store.get_task(task_id)
    assert task is not None
    assert task.category_id == categories["Hobby"].id


@pytest.mark.asyncio
async def test_unknown_category_id_falls_back(state: AppState, reasoner: FakeReasoner, categories) -> None:
    reasoner.classify = '{"action": "existing", "categoryId": "does-not-exist"}'
    task_id = state.store.add_task(title="Something")

    await state.pipeline.run(task_id)

    task = state.store.get_task(task_id)
    assert task is not None
    assert task.category_id == categories["Misc"].id
    assert task.category_source == CategorySource.FALLBACK


@pytest.mark.asyncio
async def test_recharge_task_is_sanctuary_without_backend_calls(state: AppState, reasoner: FakeReasoner) -> None:
    task_id = state.store.add_task(title="Evening walk", portfolio_type=PortfolioType.RECHARGE)

    result = await state.pipeline.run(task_id)

    assert result is not None
    assert result.is_sanctuary
    assert all(p.score == 100 for p in result.perspectives().values())
    assert result.overall_score == 100
    assert result.sanctuary_message
    assert reasoner.calls == []

    task = state.store.get_task(task_id)
    assert task is not None
    assert task.is_sanctuary
    assert task.classification_status == ClassificationStatus.COMPLETED


@pytest.mark.asyncio
async def test_keyword_sanctuary_is_persisted(state: AppState, reasoner: FakeReasoner) -> None:
    task_id = state.store.add_task(title="Afternoon NAP on the sofa")

    result = await state.pipeline.run(task_id)

    assert result is not None and result.is_sanctuary
    task = state.store.get_task(task_id)
    assert task is not None and task.is_sanctuary
    assert reasoner.calls == []


@pytest.mark.asyncio
async def test_sanctuary_message_follows_personality(state: AppState) -> None:
    save_personality(state.store, Personality.YURU)
    task_id = state.store.add_task(title="Evening walk")

    result = await state.pipeline.run(task_id)

    assert result is not None
    assert result.sanctuary_message == "This is precious time~ just enjoy it as it is!"


@pytest.mark.asyncio
async def test_backend_failures_become_neutral_defaults(state: AppState, categories) -> None:
    state.pipeline._reasoner = FakeReasoner(classify=RuntimeError("down"), review=TimeoutError())
    task_id = state.store.add_task(title="Fix the sink")

    result = await state.pipeline.run(task_id)

    assert result is not None
    for p in result.perspectives().values():
        assert p.score == 50
        assert p.summary == "Could not evaluate"
    assert result.overall_score == 50
    assert not result.is_sanctuary
    assert result.sanctuary_message is None

    task = state.store.get_task(task_id)
    assert task is not None
    assert task.classification_status == ClassificationStatus.COMPLETED
    assert task.category_id == categories["Misc"].id


@pytest.mark.asyncio
async def test_unparseable_review_is_neutral(state: AppState, reasoner: FakeReasoner) -> None:
    reasoner.review = "I would rather not answer in JSON."
    task_id = state.store.add_task(title="Plan trip")

    result = await state.pipeline.run(task_id)

    assert result is not None
    assert result.overall_score == 50
    assert result.necessity.summary == "Could not evaluate"


@pytest.mark.asyncio
async def test_stage_crash_marks_task_failed_and_keeps_earlier_writes(
    state: AppState, categories, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def boom(*args, **kwargs):
        raise RuntimeError("review exploded")

    monkeypatch.setattr("aitas.pipeline.runner.review_task", boom)
    task_id = state.store.add_task(title="Pay rent")

    result = await state.pipeline.run(task_id)

    assert result is None
    task = state.store.get_task(task_id)
    assert task is not None
    assert task.classification_status == ClassificationStatus.FAILED
    assert task.category_id == categories["Misc"].id
    assert task.review is None


@pytest.mark.asyncio
async def test_deleted_task_ends_quietly(state: AppState, reasoner: FakeReasoner) -> None:
    task_id = state.store.add_task(title="Gone soon")
    state.store.delete_task(task_id)

    assert await state.pipeline.run(task_id) is None
    assert reasoner.calls == []


@pytest.mark.asyncio
async def test_manual_category_skips_inference(state: AppState, reasoner: FakeReasoner, categories) -> None:
    task_id = state.store.add_task(title="Standup", category_id=categories["Work"].id)

    await state.pipeline.run(task_id)

    task = state.store.get_task(task_id)
    assert task is not None
    assert task.category_id == categories["Work"].id
    assert task.category_source == CategorySource.MANUAL
    assert task.classification_status == ClassificationStatus.COMPLETED
    assert reasoner.classify_calls == []
    assert len(reasoner.review_calls) == 1


@pytest.mark.asyncio
async def test_replay_runs_pending_only_oldest_first(state: AppState) -> None:
    first = state.store.add_task(title="First", created_at=1000.0)
    broken = state.store.add_task(title="Broken", created_at=1001.0)
    second = state.store.add_task(title="Second", created_at=1002.0)
    state.store.update_task_fields(broken, classification_status=ClassificationStatus.FAILED)

    replayed = await state.pipeline.replay_pending(pause_seconds=0)

    assert replayed == [first, second]
    statuses = {t.id: t.classification_status for t in state.store.list_tasks()}
    assert statuses[first] == ClassificationStatus.COMPLETED
    assert statuses[second] == ClassificationStatus.COMPLETED
    assert statuses[broken] == ClassificationStatus.FAILED

    # Nothing left to do.
    assert await state.pipeline.replay_pending(pause_seconds=0) == []


@pytest.mark.asyncio
async def test_schedule_and_manual_retry(state: AppState) -> None:
    task_id = state.store.add_task(title="Call the bank")
    state.store.update_task_fields(task_id, classification_status=ClassificationStatus.FAILED)

    with pytest.raises(ValueError):
        state.pipeline.retry(state.store.add_task(title="Not failed"))

    state.pipeline.retry(task_id)
    await state.pipeline.wait_idle()

    task = state.store.get_task(task_id)
    assert task is not None
    assert task.classification_status == ClassificationStatus.COMPLETED
    assert state.pipeline.inflight == 0


@pytest.mark.asyncio
async def test_third_identical_suggestion_opens_a_proposal(
    state: AppState, reasoner: FakeReasoner, categories
) -> None:
    work = categories["Work"]
    reasoner.classify = json.dumps({"action": "new_subcategory", "parentId": work.id, "suggestedName": "Meetings"})

    for i in range(2):
        await state.pipeline.run(state.store.add_task(title=f"Meeting {i}"))
    assert state.store.list_open_proposals() == []

    third = state.store.add_task(title="Meeting 2")
    await state.pipeline.run(third)

    proposals = state.store.list_open_proposals()
    assert len(proposals) == 1
    assert proposals[0].name == "Meetings"
    assert proposals[0].parent_id == work.id
    assert proposals[0].reason == "frequency"
    assert len(state.store.list_suggestions()) == 3

    # No category is created on its own, the task stays in the default one.
    assert "Meetings" not in {c.name for c in state.store.list_categories()}
    task = state.store.get_task(third)
    assert task is not None and task.category_id == categories["Misc"].id

    # Replaying a finished task does not log the suggestion again.
    assert await state.pipeline.replay_pending(pause_seconds=0) == []
    assert len(state.store.list_suggestions()) == 3


@pytest.mark.asyncio
async def test_review_prompt_carries_goal_care_mode_and_load(state: AppState, reasoner: FakeReasoner) -> None:
    goal_id = state.store.add_goal(title="Ship the side project")
    task_id = state.store.add_task(title="Write landing page", portfolio_type=PortfolioType.DRIVE, goal_id=goal_id)
    state.care.enter(RescheduleReason.STRUGGLING)

    await state.pipeline.run(task_id)

    (call,) = reasoner.review_calls
    assert "Ship the side project" in call.prompt
    assert "Care mode: ON" in call.prompt
    assert "Tasks today: 1" in call.prompt
    assert "judge strictly how well it serves the linked goal" in call.prompt
    assert "Guidance:" in call.prompt


@pytest.mark.asyncio
async def test_personality_and_user_weights_drive_overall_score(state: AppState, reasoner: FakeReasoner) -> None:
    reasoner.review = _review_json(100, 0, 0, 0)

    save_personality(state.store, Personality.MAJI)
    result = await state.pipeline.run(state.store.add_task(title="Refactor module"))
    assert result is not None
    assert result.overall_score == round(150 / 4.5)
    assert "strict" in reasoner.review_calls[-1].prompt

    save_review_weights(state.store, ReviewWeights(necessity=1.0, feasibility=0.0, decomposition=0.0, efficiency=0.0))
    result = await state.pipeline.run(state.store.add_task(title="Refactor another module"))
    assert result is not None
    assert result.overall_score == 100

    save_review_weights(state.store, ReviewWeights(**{name: 0.0 for name in PERSPECTIVES}))
    result = await state.pipeline.run(state.store.add_task(title="Refactor a third module"))
    assert result is not None
    assert result.overall_score == 50


def test_overall_score_is_neutral_for_unusable_weights() -> None:
    perspectives = {name: ReviewPerspective(score=80, summary="ok") for name in PERSPECTIVES}

    assert compute_overall_score(perspectives, ReviewWeights(necessity=float("inf"))) == 50
    assert compute_overall_score(perspectives, ReviewWeights(**{name: 0.0 for name in PERSPECTIVES})) == 50
    assert compute_overall_score(perspectives, ReviewWeights()) == 80


def test_non_finite_weight_overrides_are_ignored() -> None:
    base = ReviewWeights(necessity=1.5)
    merged = ReviewWeights.from_mapping(
        {"necessity": float("inf"), "feasibility": float("nan"), "efficiency": -2, "decomposition": 3},
        base=base,
    )
    assert merged == ReviewWeights(necessity=1.5, feasibility=1.0, decomposition=3.0, efficiency=0.0)


@pytest.mark.asyncio
async def test_stored_infinite_weight_does_not_fail_reviews(state: AppState, reasoner: FakeReasoner) -> None:
    state.store.set_setting("reviewWeights", '{"necessity": Infinity, "feasibility": 1}')
    reasoner.review = _review_json(100, 0, 0, 0)
    task_id = state.store.add_task(title="Write report")

    result = await state.pipeline.run(task_id)

    assert result is not None
    assert result.overall_score == 25
    task = state.store.get_task(task_id)
    assert task is not None
    assert task.classification_status == ClassificationStatus.COMPLETED
    assert task.review is not None
