"""Course content blocks.

A course stores its blocks as a JSON array.  The questionnaire block keeps
its questions in a nested, JSON-encoded ``Content`` string.  Older rows
put the questions directly on the block or under ``Data`` and use either
casing for property names.  All of those shapes are decoded here, once,
into typed blocks so the rest of the application never looks at raw
course JSON.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)

QUESTIONNAIRE_TYPES = {"questionnaire", "quiz", "questions"}
TEXT_TYPES = {"text", "texte"}
MEDIA_TYPES = {"image", "video", "audio", "file", "fichier", "link", "lien"}
QUESTION_TYPES = {"multiple-choice", "true-false", "multiple-select"}

MIN_RECOMMENDED_QUESTIONS = 3
MAX_RECOMMENDED_QUESTIONS = 20


def _get(data: dict, *names: str, default: Any = None) -> Any:
    """Case-insensitive lookup of the first matching property name."""
    if not isinstance(data, dict):
        return default
    lowered = {str(k).lower(): v for k, v in data.items()}
    for name in names:
        if name.lower() in lowered:
            return lowered[name.lower()]
    return default


@dataclass
class Option:
    text: str = ""
    is_correct: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "Option":
        return cls(
            text=_get(data, "Text", default="") or "",
            is_correct=bool(_get(data, "IsCorrect", default=False)),
        )

    def to_dict(self) -> dict:
        return {"Text": self.text, "IsCorrect": self.is_correct}


@dataclass
class Question:
    question: str = ""
    type: Optional[str] = None
    options: list[Option] = field(default_factory=list)
    hint: Optional[str] = None
    explanation: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Question":
        options = _get(data, "Options", default=[]) or []
        return cls(
            question=_get(data, "Question", default="") or "",
            type=_get(data, "Type"),
            options=[Option.from_dict(o) for o in options if isinstance(o, dict)],
            hint=_get(data, "Hint"),
            explanation=_get(data, "Explanation"),
        )

    def to_dict(self) -> dict:
        return {
            "Question": self.question,
            "Type": self.type,
            "Options": [o.to_dict() for o in self.options],
            "Hint": self.hint,
            "Explanation": self.explanation,
        }

    @property
    def correct_count(self) -> int:
        return sum(1 for o in self.options if o.is_correct)

    def is_correct_selection(self, selected: list[int]) -> bool:
        """An answer is right when it picks exactly the correct options."""
        expected = {i for i, o in enumerate(self.options) if o.is_correct}
        return bool(expected) and set(selected) == expected


@dataclass
class ContentBlock:
    type: str
    title: str = ""
    order: int = 0
    raw: dict = field(default_factory=dict, repr=False)


@dataclass
class TextBlock(ContentBlock):
    text: str = ""


@dataclass
class MediaBlock(ContentBlock):
    url: Optional[str] = None


@dataclass
class QuestionnaireBlock(ContentBlock):
    questionnaire_title: str = "Questionnaire"
    questions: list[Question] = field(default_factory=list)
    # False when the block carried no recognisable questions array.
    has_questions_array: bool = False

    @property
    def question_count(self) -> int:
        return len(self.questions)


@dataclass
class CourseContent:
    blocks: list[ContentBlock] = field(default_factory=list)

    @property
    def questionnaires(self) -> list[QuestionnaireBlock]:
        return [b for b in self.blocks if isinstance(b, QuestionnaireBlock)]

    @property
    def questionnaire(self) -> Optional[QuestionnaireBlock]:
        """The graded questionnaire: the first one that declares questions."""
        for block in self.questionnaires:
            if block.has_questions_array:
                return block
        return None

    @property
    def questionnaire_index(self) -> Optional[int]:
        block = self.questionnaire
        if block is None:
            return None
        return self.blocks.index(block)

    @property
    def question_count(self) -> int:
        block = self.questionnaire
        return block.question_count if block else 0


def _find_questions(block: dict) -> tuple[Optional[str], Optional[list]]:
    """Locate the questions array of a questionnaire block.

    Returns ``(questionnaire_title, questions)``; ``questions`` is ``None``
    when no array could be found.
    """
    content = _get(block, "Content")
    if isinstance(content, str) and content:
        try:
            content = json.loads(content)
        except ValueError:
            logger.warning("Questionnaire block %r has unparsable Content", _get(block, "Title"))
            content = None
    if isinstance(content, dict):
        questions = _get(content, "Questions")
        if isinstance(questions, list):
            return _get(content, "Title"), questions

    questions = _get(block, "Questions")
    if isinstance(questions, list):
        return None, questions

    data = _get(block, "Data")
    if isinstance(data, dict):
        questions = _get(data, "Questions")
        if isinstance(questions, list):
            return _get(data, "Title"), questions

    return None, None


def decode_block(data: dict) -> ContentBlock:
    block_type = str(_get(data, "Type", default="") or "").lower()
    title = _get(data, "Title", default="") or ""
    order = _get(data, "Order", default=0) or 0

    if block_type in QUESTIONNAIRE_TYPES:
        q_title, questions = _find_questions(data)
        return QuestionnaireBlock(
            type=block_type,
            title=title,
            order=order,
            raw=data,
            questionnaire_title=q_title or "Questionnaire",
            questions=[Question.from_dict(q) for q in questions or [] if isinstance(q, dict)],
            has_questions_array=questions is not None,
        )
    if block_type in MEDIA_TYPES:
        url = _get(data, "Url", "ImageUrl", "VideoUrl", "AudioUrl", "FileUrl")
        return MediaBlock(type=block_type, title=title, order=order, raw=data, url=url)
    return TextBlock(
        type=block_type,
        title=title,
        order=order,
        raw=data,
        text=_get(data, "Text", default="") or "",
    )


def decode_course_content(raw: Optional[str]) -> CourseContent:
    """Decode a course's serialized block list.

    Missing or unparsable content decodes to an empty course rather than
    raising, so scoring treats it as "no questions".
    """
    if not raw:
        return CourseContent()
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Course content is not valid JSON")
        return CourseContent()
    if not isinstance(data, list):
        logger.warning("Course content is not a block list")
        return CourseContent()
    return CourseContent(blocks=[decode_block(b) for b in data if isinstance(b, dict)])


def build_questionnaire_block(
    questions: list[Question], title: str = "Questionnaire", order: int = 0
) -> dict:
    """Return a questionnaire block in its stored layout (JSON-encoded Content)."""
    payload = {"Title": title, "Questions": [q.to_dict() for q in questions]}
    return {
        "Type": "questionnaire",
        "Title": title,
        "Order": order,
        "Content": json.dumps(payload),
    }


def encode_blocks(blocks: list[dict]) -> str:
    return json.dumps(blocks)


@dataclass
class CourseValidationResult:
    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    questionnaire_count: int = 0
    total_questions: int = 0
    total_blocks: int = 0

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)


def _validate_questionnaire(block: QuestionnaireBlock, result: CourseValidationResult) -> None:
    name = block.title or block.questionnaire_title
    if not block.questions:
        result.add_error(f"Questionnaire '{name}' must contain at least one question")
        return

    result.total_questions += len(block.questions)
    for number, question in enumerate(block.questions, start=1):
        prefix = f"Questionnaire '{name}' - question {number}"
        if not question.question.strip():
            result.add_error(f"{prefix}: question text is required")
        if len(question.options) < 2:
            result.add_error(f"{prefix}: at least 2 options are required")
            continue
        if question.correct_count == 0:
            result.add_error(f"{prefix}: at least one correct option is required")
        empty = sum(1 for o in question.options if not o.text.strip())
        if empty:
            result.add_error(f"{prefix}: {empty} option(s) without text")

        if question.type == "multiple-choice" and question.correct_count > 1:
            result.add_warning(
                f"{prefix}: single choice question has {question.correct_count} correct options"
            )
        elif question.type == "true-false" and len(question.options) != 2:
            result.add_error(f"{prefix}: a true/false question needs exactly 2 options")
        elif question.type not in QUESTION_TYPES:
            result.add_warning(f"{prefix}: unknown question type '{question.type}'")

    if len(block.questions) < MIN_RECOMMENDED_QUESTIONS:
        result.add_warning(
            f"Questionnaire '{name}' only has {len(block.questions)} question(s); "
            f"at least {MIN_RECOMMENDED_QUESTIONS} are recommended"
        )
    elif len(block.questions) > MAX_RECOMMENDED_QUESTIONS:
        result.add_warning(
            f"Questionnaire '{name}' has {len(block.questions)} questions; "
            "long questionnaires discourage learners"
        )


def validate_course_content(raw: Optional[str]) -> CourseValidationResult:
    """Check that a course has exactly one well formed questionnaire."""
    result = CourseValidationResult()
    if raw:
        try:
            parsed = json.loads(raw)
        except ValueError:
            result.add_error("Course content is not valid JSON")
            return result
        if not isinstance(parsed, list):
            result.add_error("Course content must be a list of blocks")
            return result

    content = decode_course_content(raw)
    result.total_blocks = len(content.blocks)
    questionnaires = content.questionnaires
    result.questionnaire_count = len(questionnaires)

    if not questionnaires:
        result.add_error("A course must contain a questionnaire block")
        return result
    if len(questionnaires) > 1:
        result.add_warning(
            f"Course contains {len(questionnaires)} questionnaires; only one is graded"
        )
    for block in questionnaires:
        _validate_questionnaire(block, result)
    return result
