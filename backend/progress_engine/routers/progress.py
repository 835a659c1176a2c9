from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import service
from ..db import get_db
from ..schemas import LearningStats, ProgressOut
from ..security import LearnerCredential, get_current_learner

router = APIRouter(prefix="/progress", tags=["progress"])


@router.get("", response_model=List[ProgressOut])
def list_progress(learner: LearnerCredential = Depends(get_current_learner), db: Session = Depends(get_db)):
	return service.list_progress(db, learner.learner_id)


@router.get("/stats", response_model=LearningStats)
def get_stats(learner: LearnerCredential = Depends(get_current_learner), db: Session = Depends(get_db)):
	return service.learning_stats(db, learner.learner_id)
