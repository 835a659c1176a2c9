from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import certificates, service
from ..db import get_db
from ..errors import EngineError, InputError
from ..schemas import CertificateOut
from ..security import LearnerCredential, get_current_learner
from .deps import http_error

router = APIRouter(prefix="/certificates", tags=["certificates"])


@router.get("", response_model=List[CertificateOut])
def list_certificates(learner: LearnerCredential = Depends(get_current_learner), db: Session = Depends(get_db)):
	return certificates.list_certificates(db, learner.learner_id)


@router.post("/check/{course_id}", response_model=CertificateOut)
def check_certificate(course_id: str, learner: LearnerCredential = Depends(get_current_learner), db: Session = Depends(get_db)):
	try:
		certificate = service.issue_certificate_if_eligible(db, learner.learner_id, course_id)
	except EngineError as e:
		raise http_error(e)
	if certificate is None:
		raise HTTPException(status_code=400, detail="Course is not completed yet")
	return certificate


@router.get("/{certificate_id}", response_model=CertificateOut)
def get_certificate(certificate_id: str, learner: LearnerCredential = Depends(get_current_learner), db: Session = Depends(get_db)):
	try:
		return certificates.get_certificate(db, learner.learner_id, certificate_id)
	except InputError as e:
		raise http_error(e)
