"""Jira site, project and tracked-user models read by the sync activities."""

from __future__ import annotations

import datetime as dt
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jirasync.db.base import Base


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def new_id() -> str:
    return str(uuid4())


class JiraSite(Base):
    __tablename__ = "jira_sites"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    alias: Mapped[str] = mapped_column(String(128), nullable=False)
    base_url: Mapped[str] = mapped_column(String(512), nullable=False)
    admin_email: Mapped[str] = mapped_column(String(255), nullable=False)
    api_token: Mapped[str] = mapped_column(String(1024), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    projects: Mapped[list["JiraProject"]] = relationship(back_populates="site")


class JiraProject(Base):
    __tablename__ = "jira_projects"
    __table_args__ = (UniqueConstraint("site_id", "jira_id", name="uq_jira_projects_site_jira_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    site_id: Mapped[str] = mapped_column(ForeignKey("jira_sites.id", ondelete="CASCADE"), index=True, nullable=False)
    jira_id: Mapped[str] = mapped_column(String(64), nullable=False)
    key: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    site: Mapped[JiraSite] = relationship(back_populates="projects")
    tracked_users: Mapped[list["ProjectTrackedUser"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
    )


class ProjectTrackedUser(Base):
    __tablename__ = "project_tracked_users"
    __table_args__ = (
        UniqueConstraint("project_id", "jira_account_id", name="uq_project_tracked_users_account"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    project_id: Mapped[str] = mapped_column(ForeignKey("jira_projects.id", ondelete="CASCADE"), index=True, nullable=False)
    jira_account_id: Mapped[str] = mapped_column(String(128), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_tracked: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    project: Mapped[JiraProject] = relationship(back_populates="tracked_users")
