from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import achievements, service
from ..db import get_db
from ..schemas import AchievementOut, AchievementStatus, CheckAchievementsResponse, LearnerAchievementsSummary
from ..security import LearnerCredential, get_current_learner

router = APIRouter(prefix="/achievements", tags=["achievements"])


@router.get("", response_model=List[AchievementStatus])
def list_achievements(learner: LearnerCredential = Depends(get_current_learner), db: Session = Depends(get_db)):
	return achievements.achievement_overview(db, learner.learner_id)


@router.get("/my", response_model=LearnerAchievementsSummary)
def my_achievements(learner: LearnerCredential = Depends(get_current_learner), db: Session = Depends(get_db)):
	return achievements.learner_achievements(db, learner.learner_id)


@router.post("/check", response_model=CheckAchievementsResponse)
def check_achievements(learner: LearnerCredential = Depends(get_current_learner), db: Session = Depends(get_db)):
	unlocked = service.evaluate_achievements(db, learner.learner_id)
	return CheckAchievementsResponse(
		newly_unlocked=[AchievementOut.model_validate(a) for a in unlocked],
		count=len(unlocked),
	)
