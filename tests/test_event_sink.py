import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path

from app.models.domain import ClarificationAnswer
from app.schemas.runs import ClarificationSubmission
from app.telemetry import FileEventSink

from stubs import ScriptedProvider, build_service, clarifying_payloads, explore_intake


def test_file_event_sink_appends_json_lines(tmp_path: Path):
    sink_path = tmp_path / "nested" / "events.jsonl"
    sink = FileEventSink(sink_path)

    sink.publish({"run_id": "run_1", "timestamp": datetime(2026, 1, 1, tzinfo=timezone.utc)})
    sink.publish({"run_id": "run_2"})
    sink.close()

    lines = sink_path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["run_id"] for line in lines] == ["run_1", "run_2"]
    assert json.loads(lines[0])["timestamp"].startswith("2026-01-01")


def test_file_event_sink_records_run_transitions(tmp_path: Path):
    sink_path = tmp_path / "events.jsonl"
    service = build_service(ScriptedProvider(clarifying_payloads()), sink=FileEventSink(sink_path))

    first = asyncio.run(service.submit_intake(explore_intake()))
    answer = ClarificationAnswer(question_id="team_experience", lens="people", answer="neutral", answer_type="enum")
    asyncio.run(
        service.submit_clarification(
            ClarificationSubmission(decision_id=first.decision_id, run_id=first.run_id, answers=[answer])
        )
    )

    events = [json.loads(line) for line in sink_path.read_text(encoding="utf-8").splitlines()]
    assert [event["event_type"] for event in events] == ["decision_run_transition"] * 2
    assert [event["transition"] for event in events] == ["intake", "clarification"]
    assert [event["status"] for event in events] == ["awaiting_clarification", "complete"]
    assert events[0]["question_count"] == 3
    assert events[0]["posture"] == "explore"
    assert events[1]["clarification_rounds"] == 1
    assert events[1]["lens_confidence"] == {"risk": "medium", "reversibility": "high", "people": "low"}
    assert {event["run_id"] for event in events} == {first.run_id}
