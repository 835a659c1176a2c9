from fastapi import HTTPException

from ..errors import EngineError, InputError, NotFoundError


def http_error(exc: EngineError) -> HTTPException:
	if isinstance(exc, NotFoundError):
		return HTTPException(status_code=404, detail=str(exc))
	if isinstance(exc, InputError):
		return HTTPException(status_code=400, detail=str(exc))
	# Engine failures the caller cannot fix, e.g. a malformed stored definition
	return HTTPException(status_code=500, detail=str(exc))
