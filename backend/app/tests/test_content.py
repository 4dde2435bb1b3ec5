"""Tests for decoding and validating stored course content."""

import json
import pathlib
import sys

# Allow importing the app package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from app.content import (
    MediaBlock,
    Option,
    Question,
    QuestionnaireBlock,
    TextBlock,
    build_questionnaire_block,
    decode_course_content,
    encode_blocks,
    validate_course_content,
)


def _question(text="Capital of France?", qtype="multiple-choice"):
    return Question(
        question=text,
        type=qtype,
        options=[Option("Paris", True), Option("Lyon", False)],
    )


def _raw_question(text="2 + 2?"):
    return {
        "Question": text,
        "Type": "multiple-choice",
        "Options": [
            {"Text": "4", "IsCorrect": True},
            {"Text": "5", "IsCorrect": False},
        ],
    }


def test_stored_layout_decodes_to_typed_blocks():
    raw = encode_blocks(
        [
            {"Type": "text", "Title": "Intro", "Text": "Welcome"},
            build_questionnaire_block([_question(), _question("Second?")], title="Quiz"),
            {"Type": "video", "Title": "Clip", "Url": "https://example.com/v.mp4"},
        ]
    )
    content = decode_course_content(raw)
    assert len(content.blocks) == 3
    assert isinstance(content.blocks[0], TextBlock)
    assert content.blocks[0].text == "Welcome"
    assert isinstance(content.blocks[2], MediaBlock)
    assert content.blocks[2].url == "https://example.com/v.mp4"

    questionnaire = content.questionnaire
    assert isinstance(questionnaire, QuestionnaireBlock)
    assert questionnaire.questionnaire_title == "Quiz"
    assert content.questionnaire_index == 1
    assert content.question_count == 2
    assert questionnaire.questions[0].options[0].is_correct is True


def test_content_object_instead_of_string():
    raw = json.dumps(
        [{"Type": "Questionnaire", "Content": {"Questions": [_raw_question()]}}]
    )
    assert decode_course_content(raw).question_count == 1


def test_questions_directly_on_block_with_lowercase_keys():
    raw = json.dumps(
        [
            {
                "type": "quiz",
                "questions": [
                    {
                        "question": "Sky colour?",
                        "options": [
                            {"text": "Blue", "isCorrect": True},
                            {"text": "Green", "isCorrect": False},
                        ],
                    }
                ],
            }
        ]
    )
    content = decode_course_content(raw)
    assert content.question_count == 1
    question = content.questionnaire.questions[0]
    assert question.question == "Sky colour?"
    assert question.correct_count == 1


def test_questions_under_data():
    raw = json.dumps(
        [
            {
                "Type": "questions",
                "Data": {"Title": "Legacy", "Questions": [_raw_question(), _raw_question()]},
            }
        ]
    )
    content = decode_course_content(raw)
    assert content.question_count == 2
    assert content.questionnaire.questionnaire_title == "Legacy"


def test_first_questionnaire_with_questions_is_graded():
    raw = json.dumps(
        [
            {"Type": "questionnaire", "Title": "Empty", "Content": "{not json"},
            {"Type": "questionnaire", "Content": json.dumps({"Questions": [_raw_question()]})},
        ]
    )
    content = decode_course_content(raw)
    assert len(content.questionnaires) == 2
    assert content.questionnaire_index == 1
    assert content.question_count == 1


def test_unreadable_content_decodes_to_empty_course():
    assert decode_course_content(None).blocks == []
    assert decode_course_content("").blocks == []
    assert decode_course_content("{broken").blocks == []
    assert decode_course_content(json.dumps({"Type": "text"})).blocks == []
    assert decode_course_content("{broken").question_count == 0


def test_correct_selection_must_match_exactly():
    question = Question(
        question="Pick the primes",
        type="multiple-select",
        options=[Option("2", True), Option("3", True), Option("4", False)],
    )
    assert question.is_correct_selection([0, 1])
    assert question.is_correct_selection([1, 0])
    assert not question.is_correct_selection([0])
    assert not question.is_correct_selection([0, 1, 2])
    assert not Question(options=[Option("a"), Option("b")]).is_correct_selection([])


def test_valid_course_passes_validation():
    raw = encode_blocks(
        [
            {"Type": "text", "Title": "Intro", "Text": "Hi"},
            build_questionnaire_block([_question(f"Q{i}") for i in range(3)]),
        ]
    )
    result = validate_course_content(raw)
    assert result.is_valid
    assert result.errors == []
    assert result.warnings == []
    assert result.questionnaire_count == 1
    assert result.total_questions == 3
    assert result.total_blocks == 2


def test_course_without_questionnaire_is_invalid():
    result = validate_course_content(encode_blocks([{"Type": "text", "Text": "Hi"}]))
    assert not result.is_valid
    assert "A course must contain a questionnaire block" in result.errors

    assert not validate_course_content(None).is_valid
    assert not validate_course_content("{broken").is_valid


def test_malformed_questions_are_reported():
    questions = [
        Question(question="", type="multiple-choice", options=[Option("a", True), Option("b")]),
        Question(question="One option", type="multiple-choice", options=[Option("a", True)]),
        Question(question="No answer", type="multiple-choice", options=[Option("a"), Option("b")]),
        Question(
            question="Three way truth",
            type="true-false",
            options=[Option("True", True), Option("False"), Option("Maybe")],
        ),
        Question(question="Blank option", type="multiple-choice", options=[Option("a", True), Option("")]),
    ]
    result = validate_course_content(encode_blocks([build_questionnaire_block(questions)]))
    assert not result.is_valid
    assert len(result.errors) == 5
    assert any("question text is required" in e for e in result.errors)
    assert any("at least 2 options" in e for e in result.errors)
    assert any("at least one correct option" in e for e in result.errors)
    assert any("exactly 2 options" in e for e in result.errors)
    assert any("without text" in e for e in result.errors)


def test_questionnaire_without_questions_is_invalid():
    result = validate_course_content(encode_blocks([build_questionnaire_block([])]))
    assert not result.is_valid
    assert any("at least one question" in e for e in result.errors)


def test_warnings_do_not_invalidate():
    multi = Question(
        question="Two right answers",
        type="multiple-choice",
        options=[Option("a", True), Option("b", True)],
    )
    odd = Question(question="Odd type", type="essay", options=[Option("a", True), Option("b")])
    raw = encode_blocks(
        [
            build_questionnaire_block([multi, odd]),
            build_questionnaire_block([_question(f"Q{i}") for i in range(21)]),
        ]
    )
    result = validate_course_content(raw)
    assert result.is_valid
    assert result.questionnaire_count == 2
    assert result.total_questions == 23
    assert any("only one is graded" in w for w in result.warnings)
    assert any("2 correct options" in w for w in result.warnings)
    assert any("unknown question type 'essay'" in w for w in result.warnings)
    assert any("at least 3 are recommended" in w for w in result.warnings)
    assert any("21 questions" in w for w in result.warnings)
