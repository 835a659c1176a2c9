from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from .settings import settings


# Tokens are issued by the auth service; this module only verifies them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


class LearnerCredential(BaseModel):
	learner_id: str
	expires_at: datetime
	session_id: Optional[str] = None

	def is_expired(self, now: Optional[datetime] = None) -> bool:
		return (now or datetime.now(timezone.utc)) >= self.expires_at


def _resolve_expiry(expires_delta: Optional[timedelta]) -> datetime:
	"""Return a safe JWT expiry timestamp.

	Falls back to the configured token lifetime, capped within ``datetime``
	bounds so very long lifetimes cannot overflow.
	"""
	delta = expires_delta
	if delta is None:
		minutes = settings.access_token_expire_minutes
		delta = timedelta(minutes=minutes) if minutes > 0 else timedelta(days=30)
	now = datetime.now(timezone.utc)
	try:
		return now + delta
	except OverflowError:
		return datetime.max.replace(tzinfo=timezone.utc)


def create_access_token(learner_id: str, *, session_id: Optional[str] = None, expires_delta: Optional[timedelta] = None) -> str:
	to_encode = {"sub": learner_id, "exp": _resolve_expiry(expires_delta)}
	if session_id:
		to_encode["jti"] = session_id
	return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_credential(token: str) -> LearnerCredential:
	credentials_exception = HTTPException(status_code=401, detail="Could not validate credentials")
	try:
		payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
	except JWTError:
		raise credentials_exception
	learner_id = payload.get("sub")
	exp = payload.get("exp")
	if not learner_id or exp is None:
		raise credentials_exception
	credential = LearnerCredential(
		learner_id=str(learner_id),
		expires_at=datetime.fromtimestamp(int(exp), tz=timezone.utc),
		session_id=payload.get("jti"),
	)
	if credential.is_expired():
		raise credentials_exception
	return credential


def get_current_learner(token: str = Depends(oauth2_scheme)) -> LearnerCredential:
	return decode_credential(token)
