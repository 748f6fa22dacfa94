from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from app.core.errors import UpstreamAnalysisError
from app.models.domain import (
    Clarification,
    ClarificationAnswer,
    PeopleLensOutput,
    PressureTestIntake,
    ReversibilityLensOutput,
    RiskLensOutput,
)
from app.providers import OpenAIProvider
from app.providers.base import LLMError
from app.services.brief import DEFAULT_TITLE, BriefSynthesizer

from stubs import ScriptedProvider, brief_payload, people_payload, reversibility_payload, risk_payload

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _intake() -> PressureTestIntake:
    return PressureTestIntake(
        decision_id="dec_1",
        situation="Switch DB",
        constraints="3mo, 2 devs",
        posture="pressure_test",
        leaning_direction="Migrate to Postgres",
    )


def _outputs():
    return [
        RiskLensOutput.model_validate(risk_payload()),
        ReversibilityLensOutput.model_validate(reversibility_payload()),
        PeopleLensOutput.model_validate(people_payload()),
    ]


def _synthesize(provider: ScriptedProvider, clarifications=()):
    synthesizer = BriefSynthesizer(provider, clock=lambda: FIXED_NOW)
    return asyncio.run(synthesizer.synthesize(_intake(), _outputs(), clarifications))


def test_brief_uses_clock_and_provider_fields():
    brief = _synthesize(ScriptedProvider())

    assert brief.generated_at == FIXED_NOW
    assert brief.title == "Recommendation: Switch after a staged dual-write"
    assert brief.recommendation == "Run a dual-write pilot in staging before committing."
    assert brief.next_steps == ["Set up dual-write", "Benchmark queries"]


def test_prompt_covers_risk_and_reversibility_but_not_people():
    provider = ScriptedProvider()
    clarifications = [
        Clarification(
            decision_id="dec_1",
            run_id="run_1",
            clarification_round=1,
            answers=[ClarificationAnswer(question_id="budget", lens="risk", answer=40, answer_type="percentage")],
        )
    ]

    _synthesize(provider, clarifications)

    (messages,) = provider.calls_for("decision_brief")
    user = messages[1].content
    assert "Leaning toward: Migrate to Postgres" in user
    assert "Data loss during cutover" in user
    assert "Dropping the old schema" in user
    assert "Support team" not in user
    assert "Only two developers available" not in user
    assert "- budget (risk): 40%" in user


def test_missing_title_falls_back_to_default():
    provider = ScriptedProvider({"decision_brief": brief_payload(title="  ", key_considerations=None)})
    brief = _synthesize(provider)

    assert brief.title == DEFAULT_TITLE
    assert brief.key_considerations == []


@pytest.mark.parametrize(
    "payload",
    [
        None,
        ["not", "a", "dict"],
        brief_payload(recommendation="   "),
        brief_payload(summary=None),
    ],
)
def test_nonconforming_brief_is_retryable(payload):
    provider = ScriptedProvider({"decision_brief": payload})

    with pytest.raises(UpstreamAnalysisError) as exc_info:
        _synthesize(provider)

    assert exc_info.value.source == "brief"
    assert exc_info.value.retryable is True


def test_provider_error_keeps_retryable_flag():
    error = LLMError("HTTP_401", "bad key", provider="scripted", retryable=False)
    provider = ScriptedProvider(errors={"decision_brief": error})

    with pytest.raises(UpstreamAnalysisError) as exc_info:
        _synthesize(provider)

    assert exc_info.value.retryable is False
    assert exc_info.value.__cause__ is error


def test_html_reply_from_provider_is_retryable_upstream_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>bad gateway</html>")

    async def _run():
        provider = OpenAIProvider("sk-test", transport=httpx.MockTransport(handler))
        try:
            synthesizer = BriefSynthesizer(provider, clock=lambda: FIXED_NOW)
            return await synthesizer.synthesize(_intake(), _outputs(), ())
        finally:
            await provider.close()

    with pytest.raises(UpstreamAnalysisError) as exc_info:
        asyncio.run(_run())

    assert exc_info.value.source == "brief"
    assert exc_info.value.retryable is True
    assert exc_info.value.__cause__.code == "INVALID_RESPONSE"
