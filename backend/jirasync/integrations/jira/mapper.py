"""Mapping utilities from Jira issue payloads to normalized issue/comment/worklog rows."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MappedUser:
    account_id: str
    display_name: str
    email: str | None = None
    avatar_url: str | None = None


@dataclass(frozen=True)
class MappedSprint:
    jira_id: int
    name: str
    state: str
    start_date: dt.datetime | None = None
    end_date: dt.datetime | None = None


@dataclass(frozen=True)
class MappedComment:
    jira_id: str
    author: MappedUser
    body: str
    jira_created_at: dt.datetime
    jira_updated_at: dt.datetime | None


@dataclass(frozen=True)
class MappedWorklog:
    jira_id: str
    author: MappedUser
    description: str | None
    time_spent_seconds: int
    jira_started_at: dt.datetime
    jira_updated_at: dt.datetime


@dataclass(frozen=True)
class MappedIssue:
    jira_id: str
    key: str
    summary: str | None
    status: str
    priority: str | None
    assignee: MappedUser | None
    sprint: MappedSprint | None
    jira_created_at: dt.datetime
    jira_updated_at: dt.datetime | None
    raw_payload: dict[str, Any]
    comments: list[MappedComment] = field(default_factory=list)
    worklogs: list[MappedWorklog] = field(default_factory=list)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def parse_datetime(value: str | None) -> dt.datetime | None:
    if not value:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    candidates = [
        normalized.replace("Z", "+00:00"),
        normalized,
    ]
    for candidate in candidates:
        try:
            parsed = dt.datetime.fromisoformat(candidate)
            if parsed.tzinfo is None:
                return parsed.replace(tzinfo=dt.timezone.utc)
            return parsed.astimezone(dt.timezone.utc)
        except ValueError:
            continue
    formats = ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z")
    for fmt in formats:
        try:
            parsed = dt.datetime.strptime(normalized, fmt)
            return parsed.astimezone(dt.timezone.utc)
        except ValueError:
            continue
    logger.warning("Could not parse Jira datetime: %s", value)
    return None


def to_iso(value: dt.datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc).isoformat()


def _text_from_adf(node: Any) -> str:
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, list):
        return " ".join(part for part in (_text_from_adf(item) for item in node) if part)
    if not isinstance(node, dict):
        return str(node)

    parts: list[str] = []
    text = node.get("text")
    if isinstance(text, str):
        parts.append(text)
    content = node.get("content")
    if isinstance(content, list):
        for child in content:
            child_text = _text_from_adf(child)
            if child_text:
                parts.append(child_text)
    return " ".join(part.strip() for part in parts if part and part.strip())


def _normalize_text(raw_body: Any) -> str:
    if isinstance(raw_body, str):
        text = raw_body
    else:
        text = _text_from_adf(raw_body)
    return " ".join(text.split()).strip()


def map_user(payload: Any, *, fallback_key: str) -> MappedUser:
    user = payload if isinstance(payload, dict) else {}
    account_id = str(user.get("accountId") or "").strip() or f"anon-{fallback_key}"
    avatars = user.get("avatarUrls") if isinstance(user.get("avatarUrls"), dict) else {}
    return MappedUser(
        account_id=account_id,
        display_name=str(user.get("displayName") or account_id),
        email=user.get("emailAddress") or None,
        avatar_url=avatars.get("48x48") or avatars.get("24x24") or None,
    )


def map_sprint(fields: dict[str, Any]) -> MappedSprint | None:
    sprint = fields.get("sprint")
    if not isinstance(sprint, dict):
        closed = fields.get("closedSprints")
        sprint = closed[0] if isinstance(closed, list) and closed and isinstance(closed[0], dict) else None
    if not sprint or sprint.get("id") is None or not sprint.get("name"):
        return None
    try:
        jira_id = int(sprint["id"])
    except (TypeError, ValueError):
        logger.debug("Ignoring sprint with non-numeric id: %r", sprint.get("id"))
        return None
    return MappedSprint(
        jira_id=jira_id,
        name=str(sprint["name"]),
        state=str(sprint.get("state") or "UNKNOWN"),
        start_date=parse_datetime(sprint.get("startDate")),
        end_date=parse_datetime(sprint.get("endDate")),
    )


def map_comment(payload: dict[str, Any]) -> MappedComment:
    comment_id = str(payload.get("id") or "").strip()
    if not comment_id:
        raise ValueError("comment_missing_id")
    return MappedComment(
        jira_id=comment_id,
        author=map_user(payload.get("author"), fallback_key=comment_id),
        body=_normalize_text(payload.get("body")),
        jira_created_at=parse_datetime(payload.get("created")) or _utcnow(),
        jira_updated_at=parse_datetime(payload.get("updated")),
    )


def map_worklog(payload: dict[str, Any]) -> MappedWorklog:
    worklog_id = str(payload.get("id") or "").strip()
    if not worklog_id:
        raise ValueError("worklog_missing_id")
    return MappedWorklog(
        jira_id=worklog_id,
        author=map_user(payload.get("author"), fallback_key=worklog_id),
        description=_normalize_text(payload.get("comment")) or None,
        time_spent_seconds=int(payload.get("timeSpentSeconds") or 0),
        jira_started_at=parse_datetime(payload.get("started")) or _utcnow(),
        jira_updated_at=parse_datetime(payload.get("updated")) or _utcnow(),
    )


def map_issue(payload: dict[str, Any]) -> MappedIssue:
    issue_id = str(payload.get("id") or "").strip()
    key = str(payload.get("key") or "").strip()
    if not issue_id or not key:
        raise ValueError("issue_missing_identity")

    fields = payload.get("fields") or {}
    assignee_payload = fields.get("assignee")
    comments: list[MappedComment] = []
    for item in list((fields.get("comment") or {}).get("comments") or []):
        if not isinstance(item, dict):
            continue
        try:
            comments.append(map_comment(item))
        except ValueError:
            logger.debug("Skipping comment without id on %s", key)
    worklogs: list[MappedWorklog] = []
    for item in list((fields.get("worklog") or {}).get("worklogs") or []):
        if not isinstance(item, dict):
            continue
        try:
            worklogs.append(map_worklog(item))
        except ValueError:
            logger.debug("Skipping worklog without id on %s", key)

    return MappedIssue(
        jira_id=issue_id,
        key=key,
        summary=fields.get("summary") or None,
        status=str((fields.get("status") or {}).get("name") or "Unknown"),
        priority=(fields.get("priority") or {}).get("name") or None,
        assignee=map_user(assignee_payload, fallback_key=issue_id) if assignee_payload else None,
        sprint=map_sprint(fields),
        jira_created_at=parse_datetime(fields.get("created")) or _utcnow(),
        jira_updated_at=parse_datetime(fields.get("updated")),
        raw_payload=payload,
        comments=comments,
        worklogs=worklogs,
    )
