"""
Error taxonomy shared by the retrieval core and the HTTP surface.

- ValidationError: malformed or missing request fields, surfaced verbatim
- BranchFailure: one namespace query or chunk fetch failed, absorbed locally
- UpstreamUnavailable: the embedding or completion service failed
- NotFound: no transcript content could be assembled
"""

from typing import Iterable, Optional


class PanloError(Exception):
    """Base class for all Panlo errors"""

    kind = "error"


class ValidationError(PanloError):
    """A request is missing required fields or carries malformed ones."""

    kind = "validation_error"

    def __init__(self, message: str, fields: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.fields = list(fields or [])


class BranchFailure(PanloError):
    """A single fan-out branch failed.

    Raised inside the branch, caught at the branch boundary and turned into
    an empty result. Never escapes a public operation.
    """

    kind = "branch_failure"

    def __init__(self, branch: str, cause: Optional[BaseException] = None):
        super().__init__(f"{branch} failed: {cause}")
        self.branch = branch
        self.cause = cause


class UpstreamUnavailable(PanloError):
    """The embedding or completion service could not serve the request."""

    kind = "upstream_unavailable"

    def __init__(self, service: str, message: str = ""):
        super().__init__(f"{service} unavailable" + (f": {message}" if message else ""))
        self.service = service


class NotFound(PanloError):
    """Nothing could be assembled for the requested resource."""

    kind = "not_found"
