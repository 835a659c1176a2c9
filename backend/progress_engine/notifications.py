from __future__ import annotations
from datetime import datetime, timedelta
from typing import List, Optional
from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from .errors import NotFoundError
from .models import Notification


def notify(db: Session, learner_id: str, type_: str, title: str, message: str, link: Optional[str] = None) -> Notification:
	# Added to the caller's transaction; committed together with the state change it reports
	row = Notification(learner_id=learner_id, type=type_, title=title, message=message, link=link)
	db.add(row)
	return row


def list_notifications(db: Session, learner_id: str, *, limit: int = 50, unread_only: bool = False) -> List[Notification]:
	stmt = select(Notification).where(Notification.learner_id == learner_id)
	if unread_only:
		stmt = stmt.where(Notification.is_read.is_(False))
	stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
	return list(db.scalars(stmt))


def unread_count(db: Session, learner_id: str) -> int:
	stmt = select(func.count()).select_from(Notification).where(
		Notification.learner_id == learner_id, Notification.is_read.is_(False)
	)
	return int(db.scalar(stmt) or 0)


def mark_read(db: Session, learner_id: str, notification_id: str) -> Notification:
	row = db.get(Notification, notification_id)
	if row is None or row.learner_id != learner_id:
		raise NotFoundError("Notification not found")
	if not row.is_read:
		row.is_read = True
		row.read_at = datetime.utcnow()
		db.commit()
	return row


def mark_all_read(db: Session, learner_id: str) -> int:
	res = db.execute(
		update(Notification)
		.where(Notification.learner_id == learner_id, Notification.is_read.is_(False))
		.values(is_read=True, read_at=datetime.utcnow())
		.execution_options(synchronize_session=False)
	)
	db.commit()
	return res.rowcount or 0


def delete_notification(db: Session, learner_id: str, notification_id: str) -> None:
	res = db.execute(
		delete(Notification).where(Notification.id == notification_id, Notification.learner_id == learner_id)
	)
	if not res.rowcount:
		db.rollback()
		raise NotFoundError("Notification not found")
	db.commit()


def purge_read_notifications(db: Session, older_than_days: int) -> int:
	if older_than_days <= 0:
		return 0
	threshold = datetime.utcnow() - timedelta(days=older_than_days)
	# Unread notifications are kept regardless of age
	res = db.execute(
		delete(Notification).where(Notification.is_read.is_(True), Notification.created_at < threshold)
	)
	db.commit()
	return res.rowcount or 0
