"""SQLAlchemy model for spores."""

from datetime import datetime

from sqlalchemy import DateTime, Float, Index, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from sporetag.db.session import Base
from sporetag.db.time import utcnow


class Spore(Base):
    """A short geotagged note dropped on the map.

    Rows are append-only: the service inserts them once and never updates or
    deletes them. ``id`` is the canonical ordering key for pagination.
    """

    __tablename__ = "spores"
    __table_args__ = (
        Index("idx_spores_location", "lat", "lng"),
        Index("idx_spores_cookie", "cookie_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    # Opaque client token; used for throttling and abuse tooling only.
    cookie_id: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.current_timestamp(),
    )
    ip_address: Mapped[str | None] = mapped_column(Text, nullable=True)
