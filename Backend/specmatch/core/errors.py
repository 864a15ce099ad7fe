"""
errors.py
~~~~~~~~~
Exception taxonomy shared by the pipeline, the search engine and the routes.

Routes map NotFoundError to 404 and InputValidationError / MalformedInputError
to 400. Everything raised inside a job run is caught by the orchestrator and
recorded as an ``error`` Status instead of escaping the worker.
"""


class SpecMatchError(Exception):
    """Base class for every error raised by this service."""


class NotFoundError(SpecMatchError):
    """Unknown job id, or a status/result/file set that no longer exists."""


class InputValidationError(SpecMatchError, ValueError):
    """A required upload is missing or a query is empty."""


class MalformedInputError(SpecMatchError, ValueError):
    """The test-case table contains no rows at all."""


class DocumentParseError(SpecMatchError):
    """Text could not be extracted from an uploaded document."""


class StageTimeoutError(SpecMatchError, TimeoutError):
    """A bounded pipeline stage did not settle before its deadline."""


class UpstreamFormatError(SpecMatchError):
    """The LLM response could not be parsed into the required schema."""


class UpstreamUnavailableError(SpecMatchError):
    """The LLM service is not configured or the remote call failed."""
