from __future__ import annotations

import asyncio
import time

import fakeredis
import pytest

from app.core.errors import NotFoundError, StateConflictError, UpstreamAnalysisError, ValidationError
from app.models.domain import ClarificationAnswer, LensName, RunStatus
from app.providers.base import LLMError
from app.repositories.redis_store import RedisRunStore
from app.schemas.runs import ClarificationSubmission

from stubs import (
    PEOPLE_QUESTION,
    RISK_QUESTION,
    ScriptedProvider,
    build_service,
    clarifying_payloads,
    explore_intake,
    make_store,
    people_payload,
    risk_payload,
)


def _answers() -> list[ClarificationAnswer]:
    return [
        ClarificationAnswer(question_id="team_experience", lens="risk", answer="unknown", answer_type="boolean"),
        ClarificationAnswer(
            question_id="rollback_share", lens="reversibility", answer=50, answer_type="percentage"
        ),
        ClarificationAnswer(question_id="team_experience", lens="people", answer="worried", answer_type="enum"),
    ]


def _submission(run, answers=None, **overrides) -> ClarificationSubmission:
    fields = {"decision_id": run.decision_id, "run_id": run.run_id, "answers": answers or _answers()}
    fields.update(overrides)
    return ClarificationSubmission(**fields)


def _store_and_client() -> tuple[RedisRunStore, fakeredis.FakeRedis]:
    client = fakeredis.FakeRedis(decode_responses=True)
    return RedisRunStore(client), client


def test_intake_without_questions_completes_in_one_step():
    store, _ = _store_and_client()
    provider = ScriptedProvider()
    service = build_service(provider, store)

    run = asyncio.run(service.submit_intake(explore_intake()))

    assert run.status == RunStatus.COMPLETE
    assert run.run_id.startswith("run_")
    assert run.decision_id.startswith("dec_")
    assert run.clarification_needed is False
    assert run.clarification_questions == []
    assert [output.lens for output in run.lens_outputs] == ["risk", "reversibility", "people"]
    assert run.decision_brief is not None
    assert run.decision_brief.recommendation
    assert run.version == 1
    assert len(provider.calls_for("decision_brief")) == 1
    assert store.get(run.run_id) == run
    assert service.get_run(run.run_id) == service.get_run(run.run_id)


def test_switch_db_decision_end_to_end():
    store, _ = _store_and_client()
    provider = ScriptedProvider(clarifying_payloads())
    service = build_service(provider, store)

    first = asyncio.run(service.submit_intake(explore_intake()))

    assert first.status == RunStatus.AWAITING_CLARIFICATION
    assert first.clarification_needed is True
    assert first.decision_brief is None
    assert [question.key for question in first.clarification_questions] == [
        (LensName.RISK, "team_experience"),
        (LensName.REVERSIBILITY, "rollback_share"),
        (LensName.PEOPLE, "team_experience"),
    ]
    assert provider.calls_for("decision_brief") == []

    final = asyncio.run(service.submit_clarification(_submission(first)))

    assert final.status == RunStatus.COMPLETE
    assert final.run_id == first.run_id
    assert final.clarification_needed is False
    assert final.clarification_questions == []
    assert final.decision_brief is not None
    assert final.decision_brief.recommendation
    assert [c.clarification_round for c in final.clarifications] == [1]
    assert all(output.questions_to_answer_next == [] for output in final.lens_outputs)
    assert final.version == 2
    assert store.get(first.run_id) == final

    rerun_messages = provider.calls_for("risk_lens")[1]
    assert "- team_experience (risk): unknown (user didn't know)" in rerun_messages[1].content
    assert "- rollback_share (reversibility): 50%" in rerun_messages[1].content


def test_questions_raised_after_clarification_are_dropped():
    payloads = clarifying_payloads()
    payloads["risk_lens"] = risk_payload([RISK_QUESTION])
    payloads["people_lens"] = people_payload([PEOPLE_QUESTION])
    service = build_service(ScriptedProvider(payloads))

    first = asyncio.run(service.submit_intake(explore_intake()))
    final = asyncio.run(service.submit_clarification(_submission(first, answers=_answers()[:1])))

    assert final.status == RunStatus.COMPLETE
    assert final.clarification_questions == []
    assert all(output.questions_to_answer_next == [] for output in final.lens_outputs)


def test_pressure_test_intake_reaches_the_lenses():
    provider = ScriptedProvider()
    service = build_service(provider)

    run = asyncio.run(
        service.submit_intake(
            explore_intake(posture="pressure_test", leaning_direction="Migrate to Postgres", decision_id="dec_db")
        )
    )

    assert run.decision_id == "dec_db"
    assert run.intake.leaning_direction == "Migrate to Postgres"
    system_prompt = provider.calls_for("people_lens")[0][0].content
    assert "Migrate to Postgres" in system_prompt


def test_invalid_intake_is_rejected_before_any_lens_call():
    provider = ScriptedProvider()
    service = build_service(provider)

    with pytest.raises(ValidationError, match="constraints is required"):
        asyncio.run(service.submit_intake(explore_intake(constraints="")))

    assert provider.calls == []


def test_lens_failure_persists_nothing():
    store, client = _store_and_client()
    provider = ScriptedProvider(
        errors={"people_lens": LLMError("HTTP_500", "down", provider="scripted", retryable=True)}
    )
    service = build_service(provider, store)

    with pytest.raises(UpstreamAnalysisError) as exc_info:
        asyncio.run(service.submit_intake(explore_intake()))

    assert exc_info.value.retryable is True
    assert client.keys("*") == []


def test_brief_failure_on_intake_persists_nothing():
    store, client = _store_and_client()
    provider = ScriptedProvider(errors={"decision_brief": LLMError("HTTP_500", "down", provider="scripted")})
    service = build_service(provider, store)

    with pytest.raises(UpstreamAnalysisError):
        asyncio.run(service.submit_intake(explore_intake()))

    assert client.keys("*") == []


def test_failed_clarification_leaves_stored_run_untouched():
    store, _ = _store_and_client()
    provider = ScriptedProvider(clarifying_payloads())
    service = build_service(provider, store)
    first = asyncio.run(service.submit_intake(explore_intake()))

    provider.errors["reversibility_lens"] = LLMError("HTTP_429", "slow down", provider="scripted", retryable=True)
    with pytest.raises(UpstreamAnalysisError):
        asyncio.run(service.submit_clarification(_submission(first)))

    stored = store.get(first.run_id)
    assert stored == first
    assert stored.status == RunStatus.AWAITING_CLARIFICATION
    assert stored.clarifications == []


def test_brief_failure_on_clarification_leaves_stored_run_untouched():
    store, _ = _store_and_client()
    provider = ScriptedProvider(clarifying_payloads())
    service = build_service(provider, store)
    first = asyncio.run(service.submit_intake(explore_intake()))

    provider.errors["decision_brief"] = LLMError("HTTP_503", "unavailable", provider="scripted", retryable=True)
    with pytest.raises(UpstreamAnalysisError) as exc_info:
        asyncio.run(service.submit_clarification(_submission(first)))

    assert exc_info.value.source == "brief"
    assert exc_info.value.retryable is True
    assert len(provider.calls_for("risk_lens")) == 2
    stored = store.get(first.run_id)
    assert stored == first
    assert stored.status == RunStatus.AWAITING_CLARIFICATION
    assert stored.clarifications == []
    assert stored.decision_brief is None


def test_clarification_for_missing_run():
    service = build_service()
    submission = ClarificationSubmission(decision_id="dec_x", run_id="run_missing", answers=_answers()[:1])

    with pytest.raises(NotFoundError, match="Run not found. Please start a new decision."):
        asyncio.run(service.submit_clarification(submission))


def test_clarification_on_complete_run_is_rejected():
    provider = ScriptedProvider(clarifying_payloads())
    service = build_service(provider)
    first = asyncio.run(service.submit_intake(explore_intake()))
    final = asyncio.run(service.submit_clarification(_submission(first)))

    with pytest.raises(StateConflictError, match="status: complete"):
        asyncio.run(service.submit_clarification(_submission(first)))

    assert service.get_run(first.run_id) == final


def test_get_run_missing():
    with pytest.raises(NotFoundError):
        build_service().get_run("run_missing")


def test_reruns_share_decision_id():
    service = build_service()
    first = asyncio.run(service.submit_intake(explore_intake(decision_id="dec_shared")))
    second = asyncio.run(service.submit_intake(explore_intake(decision_id="dec_shared", posture="surface_risks")))

    runs = service.list_runs("dec_shared")

    assert first.run_id != second.run_id
    assert {run.run_id for run in runs} == {first.run_id, second.run_id}


class _BrokenSink:
    def publish(self, event) -> None:
        raise OSError("No space left on device")

    def close(self) -> None:
        return None


def test_sink_failure_does_not_fail_a_stored_run():
    store, _ = _store_and_client()
    service = build_service(store=store, sink=_BrokenSink())

    run = asyncio.run(service.submit_intake(explore_intake()))

    assert run.status == RunStatus.COMPLETE
    assert store.get(run.run_id) == run


class _SlowInsertStore:
    """Delegates to a real store but blocks the calling thread on insert."""

    def __init__(self, inner: RedisRunStore, delay: float) -> None:
        self._inner = inner
        self._delay = delay

    def insert(self, run):
        time.sleep(self._delay)
        return self._inner.insert(run)

    def __getattr__(self, name):
        return getattr(self._inner, name)


def test_slow_store_does_not_block_the_event_loop():
    store = _SlowInsertStore(make_store(), delay=0.5)
    service = build_service(store=store)
    gaps: list[float] = []

    async def _heartbeat(stop: asyncio.Event) -> None:
        last = time.perf_counter()
        while not stop.is_set():
            await asyncio.sleep(0.05)
            now = time.perf_counter()
            gaps.append(now - last)
            last = now

    async def _run():
        stop = asyncio.Event()
        beat = asyncio.create_task(_heartbeat(stop))
        try:
            return await service.submit_intake(explore_intake())
        finally:
            stop.set()
            await beat

    run = asyncio.run(_run())

    assert store.get(run.run_id) == run
    assert len(gaps) >= 5
    assert max(gaps) < 0.3
