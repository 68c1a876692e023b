"""SQLAlchemy model for alias to device token records."""

from __future__ import annotations

import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from pushgate.core.database import Base


class DeviceTokenRecord(Base):
  """Persist a single APNs device token under its namespaced alias key."""

  __tablename__ = "device_tokens"

  key: Mapped[str] = mapped_column(String(512), primary_key=True)
  token: Mapped[str] = mapped_column(Text, nullable=False, default="")
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
