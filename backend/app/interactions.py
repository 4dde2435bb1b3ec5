"""Per-question interaction records.

Answers are stored in ``CourseProgress.block_interactions`` as a flat JSON
object keyed ``"{block}_q{question}"`` whose values are themselves
JSON-encoded records.  In memory they live in an :class:`InteractionMap`,
a nested ``block -> question -> record`` mapping, which writes back to the
same flat object.  Entries whose key is not a question key (non
questionnaire blocks write plain indexes) are carried through untouched.
"""

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Optional

from app.scoring import QuizScoreResult, score

logger = logging.getLogger(__name__)

QUESTIONNAIRE_TYPE = "questionnaire"

_KEY_RE = re.compile(r"^(\d+)_q(\d+)$")


def format_key(block_index: int, question_index: int) -> str:
    return f"{block_index}_q{question_index}"


def parse_key(key: str) -> Optional[tuple[int, int]]:
    """Return ``(block_index, question_index)`` or ``None`` for other keys."""
    match = _KEY_RE.match(key)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


class InteractionParseError(ValueError):
    """A stored interaction could not be decoded."""


@dataclass
class QuestionnaireInteraction:
    correct: bool
    question_index: int
    timestamp: datetime
    score_result: QuizScoreResult
    type: str = QUESTIONNAIRE_TYPE

    @classmethod
    def answer(
        cls, question_index: int, is_correct: bool, when: Optional[datetime] = None
    ) -> "QuestionnaireInteraction":
        """Build a scored record for one answer."""
        return cls(
            correct=is_correct,
            question_index=question_index,
            timestamp=when or datetime.utcnow(),
            score_result=score(is_correct),
        )

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "correct": self.correct,
            "questionIndex": self.question_index,
            "timestamp": self.timestamp.isoformat(),
            "scoreResult": {
                "finalScore": self.score_result.final_score,
                "isCorrect": self.score_result.is_correct,
            },
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw: str) -> "QuestionnaireInteraction":
        """Decode a stored record.

        Raises :class:`InteractionParseError` when the value is not a
        scored questionnaire answer.
        """
        try:
            data = json.loads(raw) if isinstance(raw, str) else raw
        except ValueError as exc:
            raise InteractionParseError(str(exc)) from exc
        if not isinstance(data, dict):
            raise InteractionParseError("record is not an object")
        if data.get("type") != QUESTIONNAIRE_TYPE:
            raise InteractionParseError(f"unexpected record type {data.get('type')!r}")
        result = data.get("scoreResult")
        if not isinstance(result, dict):
            raise InteractionParseError("record has no scoreResult")

        try:
            is_correct = bool(result.get("isCorrect", data.get("correct", False)))
            final_score = int(result.get("finalScore", 0))
            question_index = int(data.get("questionIndex", 0))
        except (TypeError, ValueError) as exc:
            raise InteractionParseError(str(exc)) from exc

        timestamp = datetime.utcnow()
        raw_ts = data.get("timestamp")
        if isinstance(raw_ts, str):
            try:
                timestamp = datetime.fromisoformat(raw_ts.replace("Z", "+00:00"))
            except ValueError:
                logger.debug("Unreadable interaction timestamp %r", raw_ts)

        return cls(
            correct=bool(data.get("correct", is_correct)),
            question_index=question_index,
            timestamp=timestamp,
            score_result=QuizScoreResult(is_correct=is_correct, final_score=final_score),
        )


class InteractionMap:
    """Nested view of a progress row's interaction object."""

    def __init__(self) -> None:
        self._answers: dict[int, dict[int, str]] = {}
        self._other: dict[str, str] = {}

    @classmethod
    def from_json(cls, raw: Optional[str]) -> "InteractionMap":
        interactions = cls()
        if not raw:
            return interactions
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unparsable interaction map")
            return interactions
        if not isinstance(data, dict):
            logger.warning("Discarding interaction map that is not an object")
            return interactions
        for key, value in data.items():
            if not isinstance(value, str):
                value = json.dumps(value)
            interactions.set_raw(key, value)
        return interactions

    def to_json(self) -> str:
        return json.dumps(self.to_flat())

    def to_flat(self) -> dict[str, str]:
        flat = dict(self._other)
        for block_index, questions in sorted(self._answers.items()):
            for question_index, value in sorted(questions.items()):
                flat[format_key(block_index, question_index)] = value
        return flat

    def set_raw(self, key: str, value: str) -> None:
        parsed = parse_key(key)
        if parsed is None:
            self._other[key] = value
            return
        block_index, question_index = parsed
        self._answers.setdefault(block_index, {})[question_index] = value

    def get_raw(self, key: str) -> Optional[str]:
        parsed = parse_key(key)
        if parsed is None:
            return self._other.get(key)
        block_index, question_index = parsed
        return self._answers.get(block_index, {}).get(question_index)

    def put(self, block_index: int, question_index: int, record: QuestionnaireInteraction) -> None:
        """Store an answer, replacing any earlier answer to the same question."""
        self._answers.setdefault(block_index, {})[question_index] = record.to_json()

    def get(self, block_index: int, question_index: int) -> Optional[QuestionnaireInteraction]:
        raw = self._answers.get(block_index, {}).get(question_index)
        if raw is None:
            return None
        try:
            return QuestionnaireInteraction.from_json(raw)
        except InteractionParseError:
            logger.warning(
                "Unparsable interaction %s", format_key(block_index, question_index)
            )
            return None

    def answers(self) -> Iterator[tuple[int, int, QuestionnaireInteraction]]:
        """Yield every decodable ``(block, question, record)`` answer.

        Records that fail to decode are logged and skipped.
        """
        for block_index, questions in sorted(self._answers.items()):
            for question_index, raw in sorted(questions.items()):
                try:
                    record = QuestionnaireInteraction.from_json(raw)
                except InteractionParseError as exc:
                    logger.warning(
                        "Skipping interaction %s: %s",
                        format_key(block_index, question_index),
                        exc,
                    )
                    continue
                yield block_index, question_index, record

    def answers_for_block(self, block_index: int) -> list[QuestionnaireInteraction]:
        return [r for b, _, r in self.answers() if b == block_index]

    def copy(self) -> "InteractionMap":
        other = InteractionMap()
        other._answers = {b: dict(q) for b, q in self._answers.items()}
        other._other = dict(self._other)
        return other

    def __len__(self) -> int:
        return len(self._other) + sum(len(q) for q in self._answers.values())

    def __contains__(self, key: str) -> bool:
        return self.get_raw(key) is not None
