from __future__ import annotations
import math
from typing import List, Sequence, Set

from .errors import InputError
from .schemas import GradeResult, Question, QuestionOutcome, QuizDefinition, RawAnswer


def round_half_up(value: float) -> int:
    # Halves round away from zero for the non-negative values used here (62.5 -> 63)
    return int(math.floor(value + 0.5))


def _is_blank(value: object) -> bool:
    return value is None or str(value).strip() == ""


def _selected_options(answer: RawAnswer) -> Set[str]:
    values = answer if isinstance(answer, list) else [answer]
    return {str(v) for v in values if not _is_blank(v)}


def _choice_is_correct(question: Question, answer: RawAnswer) -> bool:
    selected = _selected_options(answer)
    if not selected:
        return False
    expected = set(question.correct_list())
    return len(selected) == len(expected) and expected <= selected


def _text_is_correct(question: Question, answer: RawAnswer) -> bool:
    if not isinstance(answer, str) or _is_blank(answer):
        return False
    correct = question.correct_list()
    if not correct:
        return False
    # Only the first accepted string is authoritative
    return answer.strip().casefold() == correct[0].strip().casefold()


def is_correct(question: Question, answer: RawAnswer) -> bool:
    if question.type == "text":
        return _text_is_correct(question, answer)
    return _choice_is_correct(question, answer)


def grade(quiz: QuizDefinition, answers: Sequence[RawAnswer]) -> GradeResult:
    """Grade one complete answer submission against a quiz definition.

    Answers are positional: ``answers[i]`` answers ``quiz.questions[i]``.
    A submission whose length differs from the question count is rejected
    rather than partially graded. Blank or missing answers simply score zero.
    """
    if len(answers) != len(quiz.questions):
        raise InputError(f"Expected {len(quiz.questions)} answers, got {len(answers)}")

    outcomes: List[QuestionOutcome] = []
    score = 0
    max_score = 0
    for question, answer in zip(quiz.questions, answers):
        correct = is_correct(question, answer)
        awarded = question.points if correct else 0
        score += awarded
        max_score += question.points
        outcomes.append(
            QuestionOutcome(question_id=question.id, answer=answer, is_correct=correct, points=awarded)
        )

    percentage = round_half_up(100 * score / max_score) if max_score > 0 else 0
    return GradeResult(
        answers=outcomes,
        score=score,
        max_score=max_score,
        percentage=percentage,
        passed=percentage >= quiz.passing_score,
    )
