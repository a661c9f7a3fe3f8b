"""
Database Models

This module defines the database models for the application.
"""
import enum

from sqlalchemy import BigInteger, Column, DateTime, Integer, String, Text, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ActivityKind(enum.IntEnum):
    """Kind of activity, stored with its legacy numeric code."""

    OPEN = 0
    LOOK = 1
    EDIT = 2


class Activity(Base):
    """One observed coding activity (open, look or edit)."""

    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(Integer, nullable=False, default=int(ActivityKind.OPEN))
    # Milliseconds since epoch
    timestamp = Column("time", BigInteger, nullable=False, index=True)
    duration = Column(Integer, nullable=False)
    language = Column(String(100), index=True)
    file = Column(Text)
    project = Column(Text, index=True)
    computer_id = Column(String(100), index=True)
    vcs_type = Column(String(50))
    vcs_repo = Column(Text)
    vcs_branch = Column(String(200))
    line = Column(Integer, nullable=False, default=0)
    char = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now(), index=True)

    def to_dict(self):
        """Serialize to the JSON shape used by the HTTP API."""
        return {
            "id": self.id,
            "kind": ActivityKind(self.kind).name.lower(),
            "timestamp": self.timestamp,
            "duration": self.duration,
            "language": self.language or "",
            "file": self.file or "",
            "project": self.project or "",
            "computerId": self.computer_id or "",
            "vcsType": self.vcs_type or "",
            "vcsRepo": self.vcs_repo or "",
            "vcsBranch": self.vcs_branch or "",
            "line": self.line,
            "char": self.char,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Activity(id={self.id}, kind={self.kind}, file={self.file})>"
