"""Local copies of Jira users, sprints, issues, comments and worklogs.

Every row is keyed uniquely by its Jira identifier so a page can be written
any number of times without producing duplicates.
"""

from __future__ import annotations

import datetime as dt
from typing import Any
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from jirasync.db.base import Base, JSONType


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def new_id() -> str:
    return str(uuid4())


class JiraUser(Base):
    __tablename__ = "jira_users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    account_id: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Sprint(Base):
    __tablename__ = "jira_sprints"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    jira_id: Mapped[int] = mapped_column(Integer, unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    state: Mapped[str] = mapped_column(String(32), nullable=False)
    start_date: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Issue(Base):
    __tablename__ = "jira_issues"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    jira_id: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    key: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    project_id: Mapped[str] = mapped_column(ForeignKey("jira_projects.id", ondelete="CASCADE"), index=True, nullable=False)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(64), nullable=False)
    priority: Mapped[str | None] = mapped_column(String(64), nullable=True)
    assignee_id: Mapped[str | None] = mapped_column(ForeignKey("jira_users.id", ondelete="SET NULL"), nullable=True)
    sprint_id: Mapped[str | None] = mapped_column(ForeignKey("jira_sprints.id", ondelete="SET NULL"), nullable=True)
    jira_created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    jira_updated_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    remote_data: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)


class Comment(Base):
    __tablename__ = "jira_comments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    jira_id: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    issue_id: Mapped[str] = mapped_column(ForeignKey("jira_issues.id", ondelete="CASCADE"), index=True, nullable=False)
    author_id: Mapped[str] = mapped_column(ForeignKey("jira_users.id", ondelete="CASCADE"), nullable=False)
    body: Mapped[str] = mapped_column(Text, default="", nullable=False)
    jira_created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    jira_updated_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Worklog(Base):
    __tablename__ = "jira_worklogs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    jira_id: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    issue_id: Mapped[str] = mapped_column(ForeignKey("jira_issues.id", ondelete="CASCADE"), index=True, nullable=False)
    author_id: Mapped[str] = mapped_column(ForeignKey("jira_users.id", ondelete="CASCADE"), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    time_spent_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    jira_started_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    jira_updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
