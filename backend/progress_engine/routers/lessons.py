from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import service
from ..db import get_db
from ..errors import InputError
from ..schemas import CompleteLessonRequest, ProgressOut
from ..security import LearnerCredential, get_current_learner
from .deps import http_error

router = APIRouter(prefix="/lessons", tags=["lessons"])


@router.post("/{lesson_id}/complete", response_model=ProgressOut)
def complete_lesson(
	lesson_id: str,
	background_tasks: BackgroundTasks,
	req: CompleteLessonRequest | None = None,
	learner: LearnerCredential = Depends(get_current_learner),
	db: Session = Depends(get_db),
):
	time_spent = req.time_spent if req else 0
	try:
		outcome = service.complete_lesson(
			db, lesson_id, learner.learner_id, time_spent, schedule=background_tasks.add_task
		)
	except InputError as e:
		raise http_error(e)
	if not outcome.completed:
		positions = ", ".join(str(p) for p in outcome.missing_positions)
		raise HTTPException(
			status_code=400,
			detail={
				"message": f"All practical exercises must be submitted before completing the lesson. Missing exercises: {positions}",
				"missing_exercises": outcome.missing_indices,
				"missing_positions": outcome.missing_positions,
			},
		)
	return outcome.progress


@router.get("/{lesson_id}/progress")
def get_lesson_progress(
	lesson_id: str,
	learner: LearnerCredential = Depends(get_current_learner),
	db: Session = Depends(get_db),
):
	row = service.lesson_progress(db, learner.learner_id, lesson_id)
	if row is None:
		return {"completed": False}
	return ProgressOut.model_validate(row)
