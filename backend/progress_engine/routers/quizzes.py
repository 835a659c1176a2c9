from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from .. import service
from ..db import get_db
from ..errors import EngineError
from ..schemas import QuizResultOut, QuizSubmissionResult, QuizSubmitRequest
from ..security import LearnerCredential, get_current_learner
from .deps import http_error

router = APIRouter(prefix="/quizzes", tags=["quizzes"])


@router.post("/{quiz_id}/submit", response_model=QuizSubmissionResult)
def submit_quiz(
	quiz_id: str,
	req: QuizSubmitRequest,
	background_tasks: BackgroundTasks,
	learner: LearnerCredential = Depends(get_current_learner),
	db: Session = Depends(get_db),
):
	try:
		return service.submit_quiz(
			db,
			quiz_id,
			learner.learner_id,
			req.answers,
			req.time_spent,
			schedule=background_tasks.add_task,
		)
	except EngineError as e:
		raise http_error(e)


@router.get("/{quiz_id}/results", response_model=List[QuizResultOut])
def get_quiz_results(
	quiz_id: str,
	limit: int = Query(default=10, ge=1, le=100),
	learner: LearnerCredential = Depends(get_current_learner),
	db: Session = Depends(get_db),
):
	return service.quiz_results(db, learner.learner_id, quiz_id, limit=limit)
