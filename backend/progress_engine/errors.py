class EngineError(Exception):
	"""Base class for errors raised by the progress engine."""


class InputError(EngineError):
	"""The caller supplied a malformed or incomplete request."""


class NotFoundError(InputError):
	"""An identifier did not resolve to a stored record."""
