"""Tests for interaction keys, records and the interaction map."""

import json
import pathlib
import sys
from datetime import datetime

import pytest

# Allow importing the app package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from app.interactions import (
    InteractionMap,
    InteractionParseError,
    QuestionnaireInteraction,
    format_key,
    parse_key,
)


def test_question_keys():
    assert format_key(3, 0) == "3_q0"
    assert parse_key("3_q0") == (3, 0)
    assert parse_key("12_q7") == (12, 7)
    assert parse_key("3") is None
    assert parse_key("3_q") is None
    assert parse_key("a_q1") is None
    assert parse_key("3_q1_extra") is None


def test_record_wire_format():
    when = datetime(2024, 5, 1, 12, 30, 0)
    record = QuestionnaireInteraction.answer(2, True, when=when)
    assert record.to_dict() == {
        "type": "questionnaire",
        "correct": True,
        "questionIndex": 2,
        "timestamp": "2024-05-01T12:30:00",
        "scoreResult": {"finalScore": 1, "isCorrect": True},
    }
    wrong = QuestionnaireInteraction.answer(0, False, when=when)
    assert wrong.to_dict()["scoreResult"] == {"finalScore": 0, "isCorrect": False}


def test_record_reads_back_from_json():
    raw = json.dumps(
        {
            "type": "questionnaire",
            "correct": False,
            "questionIndex": 4,
            "timestamp": "2024-05-01T12:30:00Z",
            "scoreResult": {"finalScore": 0, "isCorrect": False},
        }
    )
    record = QuestionnaireInteraction.from_json(raw)
    assert record.question_index == 4
    assert record.correct is False
    assert record.score_result.final_score == 0
    assert record.timestamp.year == 2024


def test_record_rejects_other_shapes():
    with pytest.raises(InteractionParseError):
        QuestionnaireInteraction.from_json("not json")
    with pytest.raises(InteractionParseError):
        QuestionnaireInteraction.from_json(json.dumps({"type": "video"}))
    with pytest.raises(InteractionParseError):
        QuestionnaireInteraction.from_json(
            json.dumps({"type": "questionnaire", "correct": True})
        )
    with pytest.raises(InteractionParseError):
        QuestionnaireInteraction.from_json(json.dumps([1, 2]))


def test_map_keeps_unknown_keys_and_nests_answers():
    record = QuestionnaireInteraction.answer(0, True).to_json()
    raw = json.dumps({"0": "viewed", "1_q0": record, "2": {"seconds": 30}})
    interactions = InteractionMap.from_json(raw)

    assert len(interactions) == 3
    assert "0" in interactions
    assert "1_q0" in interactions
    assert "1_q1" not in interactions
    assert interactions.get_raw("0") == "viewed"
    # non string values are stored JSON encoded
    assert json.loads(interactions.get_raw("2")) == {"seconds": 30}

    flat = interactions.to_flat()
    assert flat["0"] == "viewed"
    assert flat["1_q0"] == record
    assert set(flat) == {"0", "1_q0", "2"}


def test_put_replaces_earlier_answer():
    interactions = InteractionMap()
    interactions.put(1, 0, QuestionnaireInteraction.answer(0, False))
    interactions.put(1, 0, QuestionnaireInteraction.answer(0, True))
    assert len(interactions) == 1
    assert interactions.get(1, 0).correct is True
    assert interactions.get(1, 5) is None


def test_unreadable_answers_are_skipped():
    good = QuestionnaireInteraction.answer(0, True).to_json()
    raw = json.dumps(
        {
            "1_q0": good,
            "1_q1": "not json",
            "1_q2": json.dumps({"type": "video"}),
            "2_q0": QuestionnaireInteraction.answer(0, False).to_json(),
        }
    )
    interactions = InteractionMap.from_json(raw)
    answers = list(interactions.answers())
    assert [(b, q) for b, q, _ in answers] == [(1, 0), (2, 0)]
    assert len(interactions.answers_for_block(1)) == 1
    assert interactions.get(1, 1) is None


def test_unreadable_map_is_empty():
    assert len(InteractionMap.from_json(None)) == 0
    assert len(InteractionMap.from_json("{broken")) == 0
    assert len(InteractionMap.from_json(json.dumps(["1_q0"]))) == 0


def test_copy_is_independent():
    interactions = InteractionMap()
    interactions.put(1, 0, QuestionnaireInteraction.answer(0, True))
    other = interactions.copy()
    other.put(1, 1, QuestionnaireInteraction.answer(1, True))
    other.set_raw("0", "viewed")
    assert len(interactions) == 1
    assert len(other) == 3
