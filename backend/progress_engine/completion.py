from __future__ import annotations
from typing import Iterable, List, Sequence, Union

from .schemas import GateDecision, LessonExercise


def practical_indices(exercises: Sequence[LessonExercise]) -> List[int]:
    return [i for i, ex in enumerate(exercises) if ex.type == "practical"]


def can_complete(
    exercises: Sequence[Union[LessonExercise, dict]],
    submitted_indices: Iterable[int],
) -> GateDecision:
    """Decide whether a lesson may be completed given the learner's evidence.

    Only practical exercises need a submission; theoretical ones never block.
    ``submitted_indices`` holds the 0-based exercise indices the learner has
    uploaded work for, already fetched by the caller.
    """
    parsed = [ex if isinstance(ex, LessonExercise) else LessonExercise.model_validate(ex) for ex in exercises]
    submitted = set(submitted_indices)
    missing = sorted(i for i in practical_indices(parsed) if i not in submitted)
    return GateDecision(
        allowed=not missing,
        missing_indices=missing,
        missing_positions=[i + 1 for i in missing],
    )
