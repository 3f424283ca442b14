"""Import log models - each import run and its ordered step entries."""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.workspace import Workspace


class ImportSource(str, Enum):
    """Where an import's rows came from."""

    MANUAL = "manual"
    CSV = "csv"
    API = "api"


class ImportLogStatus(str, Enum):
    """Lifecycle status of an import run."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL = "partial"


class ImportLogStep(str, Enum):
    """Pipeline phase an entry was recorded in."""

    VALIDATING = "validating"
    CHECKING_DUPLICATE = "checking_duplicate"
    EXTRACTING_HASHTAGS = "extracting_hashtags"
    CREATING_POST = "creating_post"
    CREATING_RIGHTS_REQUEST = "creating_rights_request"
    FETCHING_MEDIA = "fetching_media"
    COMPLETED = "completed"
    FAILED = "failed"


class LogStatus(str, Enum):
    """Outcome of a step. Independent of the step itself."""

    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


TERMINAL_STATUSES = {
    ImportLogStatus.COMPLETED,
    ImportLogStatus.FAILED,
    ImportLogStatus.PARTIAL,
}


class ImportLog(Base):
    """
    One invocation of the import pipeline (a single post or a batch).

    Counters only ever move forward while the run is processing:
    processed <= total_items and succeeded + failed + skipped <= processed.
    """

    __tablename__ = "import_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ImportLogStatus.PENDING.value
    )

    total_items: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    succeeded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skipped: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON)

    started_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    workspace: Mapped["Workspace"] = relationship("Workspace", back_populates="import_logs")
    entries: Mapped[list["ImportLogEntry"]] = relationship(
        "ImportLogEntry",
        back_populates="import_log",
        cascade="all, delete-orphan",
        order_by="ImportLogEntry.sequence",
    )

    __table_args__ = (
        Index("idx_import_logs_workspace_created", "workspace_id", "created_at"),
    )


class ImportLogEntry(Base):
    """A single recorded step of an import run. Written once, never updated."""

    __tablename__ = "import_log_entries"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    import_log_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("import_logs.id", ondelete="CASCADE"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    step: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    duration: Mapped[int | None] = mapped_column(Integer)  # ms since previous entry
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    import_log: Mapped["ImportLog"] = relationship("ImportLog", back_populates="entries")

    __table_args__ = (
        UniqueConstraint("import_log_id", "sequence", name="uq_import_log_entries_sequence"),
        Index("idx_import_log_entries_log_created", "import_log_id", "created_at"),
    )
