"""Custom exceptions for application-specific error handling."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Dict, Any

if TYPE_CHECKING:
    from jirasync.integrations.jira.errors import JiraErrorClassification


class JiraSyncException(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 400,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        self.headers = headers
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class NotFoundError(JiraSyncException):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "not_found", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="NOT_FOUND", details=details, status_code=404)


class BadRequestError(JiraSyncException):
    """Raised when request is invalid."""

    def __init__(self, message: str = "bad_request", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="BAD_REQUEST", details=details, status_code=400)


# ===== SYNC CONFIGURATION EXCEPTIONS =====


class ProjectNotFoundError(NotFoundError):
    """Raised when a sync operation targets an unknown project."""

    def __init__(self, project_id: str):
        super().__init__("Project not found", details={"project_id": project_id})
        self.error_code = "PROJECT_NOT_FOUND"


class SyncJobNotFoundError(NotFoundError):
    """Raised when an operation requires an existing sync job."""

    def __init__(self, project_id: str):
        super().__init__("Sync job not found", details={"project_id": project_id})
        self.error_code = "SYNC_JOB_NOT_FOUND"


class JiraSiteNotFoundError(NotFoundError):
    """Raised when a project references a missing Jira site."""

    def __init__(self, site_id: str):
        super().__init__("Jira site not found", details={"site_id": site_id})
        self.error_code = "JIRA_SITE_NOT_FOUND"


# ===== JIRA EXCEPTIONS =====


class JiraException(JiraSyncException):
    """Base exception for Jira-related errors."""


class JiraClientError(JiraException):
    """Raised by the Jira client for any failed remote call, with its classification."""

    def __init__(self, classification: "JiraErrorClassification"):
        super().__init__(
            classification.message,
            error_code=f"JIRA_{classification.code.value}",
            details=classification.to_dict(),
            status_code=502,
        )
        self.classification = classification

    @property
    def retryable(self) -> bool:
        return self.classification.retryable


# ===== WORKFLOW ENGINE EXCEPTIONS =====


class EngineException(JiraSyncException):
    """Base exception for durable workflow engine errors."""


class ScheduleAlreadyExistsError(EngineException):
    """Raised when creating a schedule whose id is already registered."""

    def __init__(self, schedule_id: str):
        super().__init__(
            "Schedule already exists",
            error_code="SCHEDULE_ALREADY_EXISTS",
            details={"schedule_id": schedule_id},
            status_code=409,
        )


class ScheduleNotFoundError(EngineException):
    """Raised when a schedule handle points at an unknown schedule."""

    def __init__(self, schedule_id: str):
        super().__init__(
            "Schedule not found",
            error_code="SCHEDULE_NOT_FOUND",
            details={"schedule_id": schedule_id},
            status_code=404,
        )


class WorkflowAlreadyStartedError(EngineException):
    """Raised when a workflow id already has a running execution."""

    def __init__(self, workflow_id: str):
        super().__init__(
            "Workflow execution already running",
            error_code="WORKFLOW_ALREADY_STARTED",
            details={"workflow_id": workflow_id},
            status_code=409,
        )


class UnknownWorkflowTypeError(EngineException):
    """Raised when a workflow or activity name has no registration."""

    def __init__(self, name: str):
        super().__init__(
            "Unknown workflow or activity",
            error_code="UNKNOWN_WORKFLOW_TYPE",
            details={"name": name},
            status_code=500,
        )


class NonDeterministicWorkflowError(EngineException):
    """Raised when replaying history yields a different activity than was recorded."""

    def __init__(self, run_id: str, expected: str, actual: str):
        super().__init__(
            "Workflow replay diverged from recorded history",
            error_code="NON_DETERMINISTIC_WORKFLOW",
            details={"run_id": run_id, "expected": expected, "actual": actual},
            status_code=500,
        )


class ActivityError(EngineException):
    """Raised into a workflow when an activity exhausts its retries or fails non-retryably."""

    def __init__(
        self,
        message: str,
        *,
        activity: str,
        cause_type: str,
        attempts: int,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code="ACTIVITY_FAILED", details=details, status_code=500)
        self.activity = activity
        self.cause_type = cause_type
        self.attempts = attempts

    def to_history(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "activity": self.activity,
            "cause_type": self.cause_type,
            "attempts": self.attempts,
            "details": self.details,
        }

    @classmethod
    def from_history(cls, data: Dict[str, Any]) -> "ActivityError":
        return cls(
            str(data.get("message") or "Activity failed"),
            activity=str(data.get("activity") or ""),
            cause_type=str(data.get("cause_type") or "Exception"),
            attempts=int(data.get("attempts") or 0),
            details=dict(data.get("details") or {}),
        )
