from __future__ import annotations

from sqlalchemy import JSON, Boolean, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base

JsonColumn = JSON().with_variant(JSONB(), "postgresql")


class ScriptRow(Base):
  __tablename__ = "scripts"

  job_id: Mapped[str] = mapped_column(String, primary_key=True)
  title: Mapped[str] = mapped_column(Text, nullable=False)
  stage: Mapped[str] = mapped_column(String, nullable=False, index=True)
  archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
  created_at: Mapped[str] = mapped_column(String, nullable=False, index=True)
  updated_at: Mapped[str] = mapped_column(String, nullable=False)
  payload: Mapped[dict] = mapped_column(JsonColumn, nullable=False)


class AutomationQueueRow(Base):
  __tablename__ = "automation_queue"

  position: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
  entry_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
  payload: Mapped[dict] = mapped_column(JsonColumn, nullable=False)


class StyleRow(Base):
  __tablename__ = "writing_styles"

  style_id: Mapped[str] = mapped_column(String, primary_key=True)
  name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
  created_at: Mapped[str] = mapped_column(String, nullable=False)
  updated_at: Mapped[str] = mapped_column(String, nullable=False)
  payload: Mapped[dict] = mapped_column(JsonColumn, nullable=False)
