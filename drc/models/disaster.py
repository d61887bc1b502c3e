import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

JSONType = JSON().with_variant(JSONB(), "postgresql")

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Disaster(Base):
    __tablename__ = "disasters"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    location_name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    owner_id: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=STATUS_PENDING, index=True
    )
    lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    lon: Mapped[float | None] = mapped_column(Float, nullable=True)
    audit_trail: Mapped[list[dict]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    reports: Mapped[list["Report"]] = relationship(
        back_populates="disaster", cascade="all, delete-orphan", lazy="selectin"
    )
    resources: Mapped[list["Resource"]] = relationship(
        back_populates="disaster", cascade="all, delete-orphan", passive_deletes=True,
        lazy="raise",
    )

    # The ORM bumps ``version`` on every flush and refuses to overwrite a
    # row whose version moved underneath it.
    __mapper_args__ = {"version_id_col": version}

    def record(self, action: str, user_id: str | None) -> None:
        """Append an audit entry (reassigned so the JSON column is marked dirty)."""
        self.audit_trail = [
            *(self.audit_trail or []),
            {
                "action": action,
                "user_id": user_id or self.owner_id,
                "timestamp": utcnow().isoformat(),
            },
        ]


class Report(Base):
    __tablename__ = "reports"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    disaster_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("disasters.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    verification_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=STATUS_PENDING
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow
    )

    disaster: Mapped["Disaster"] = relationship(back_populates="reports")


class Resource(Base):
    __tablename__ = "resources"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    disaster_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("disasters.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    location_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lon: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow
    )

    disaster: Mapped["Disaster"] = relationship(back_populates="resources")
