from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import notifications
from ..db import get_db
from ..errors import InputError
from ..schemas import MarkAllReadResult, NotificationList, NotificationOut
from ..security import LearnerCredential, get_current_learner
from .deps import http_error

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationList)
def list_notifications(
	limit: int = Query(default=50, ge=1, le=200),
	unread_only: bool = False,
	learner: LearnerCredential = Depends(get_current_learner),
	db: Session = Depends(get_db),
):
	rows = notifications.list_notifications(db, learner.learner_id, limit=limit, unread_only=unread_only)
	return NotificationList(
		notifications=[NotificationOut.model_validate(r) for r in rows],
		unread_count=notifications.unread_count(db, learner.learner_id),
	)


@router.put("/read-all", response_model=MarkAllReadResult)
def mark_all_read(learner: LearnerCredential = Depends(get_current_learner), db: Session = Depends(get_db)):
	return MarkAllReadResult(count=notifications.mark_all_read(db, learner.learner_id))


@router.put("/{notification_id}/read", response_model=NotificationOut)
def mark_read(notification_id: str, learner: LearnerCredential = Depends(get_current_learner), db: Session = Depends(get_db)):
	try:
		return notifications.mark_read(db, learner.learner_id, notification_id)
	except InputError as e:
		raise http_error(e)


@router.delete("/{notification_id}", status_code=204)
def delete_notification(notification_id: str, learner: LearnerCredential = Depends(get_current_learner), db: Session = Depends(get_db)):
	try:
		notifications.delete_notification(db, learner.learner_id, notification_id)
	except InputError as e:
		raise http_error(e)
