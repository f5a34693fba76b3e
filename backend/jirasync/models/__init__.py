"""Convenience imports for Alembic metadata discovery."""

from jirasync.models.project import JiraProject, JiraSite, ProjectTrackedUser
from jirasync.models.sync import SyncJob, SyncLog, SyncState
from jirasync.models.jira_data import Comment, Issue, JiraUser, Sprint, Worklog  # noqa: F401
