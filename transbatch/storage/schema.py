"""SQLAlchemy table definitions for durable translation state.

Tables:
- `file_info`: origin files, unique by path.
- `translation`: one row per normalized source key.
- `translation_history`: append-only audit rows, cascaded with their translation.
- `example_preset`: named few-shot example sets stored as JSON text.
- `prompt_presets`: named prompt templates.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, MetaData, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


convention = {
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_N_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def local_now() -> datetime:
    """Return the current local time as a naive datetime, as SQLite stores it."""

    return datetime.now()


class Base(DeclarativeBase):
    """Declarative base sharing one naming convention."""

    metadata = MetaData(naming_convention=convention)


class FileInfoRow(Base):
    __tablename__ = "file_info"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_path: Mapped[str] = mapped_column(String(2000), nullable=False, unique=True)

    translations: Mapped[list[TranslationRow]] = relationship(back_populates="file_info")


class TranslationRow(Base):
    __tablename__ = "translation"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    source: Mapped[str] = mapped_column(Text, nullable=False, unique=True, index=True)
    target: Mapped[str] = mapped_column(Text, nullable=False, default="")
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    model: Mapped[str] = mapped_column(String(200), nullable=False, default="unknown")
    file_info_id: Mapped[int | None] = mapped_column(
        ForeignKey("file_info.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=local_now, nullable=False)
    last_accessed_at: Mapped[datetime] = mapped_column(
        DateTime, default=local_now, nullable=False, index=True
    )

    file_info: Mapped[FileInfoRow | None] = relationship(back_populates="translations")
    history: Mapped[list[TranslationHistoryRow]] = relationship(
        back_populates="translation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<TranslationRow(id={self.id}, success={self.success}, model={self.model})>"


class TranslationHistoryRow(Base):
    __tablename__ = "translation_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    translation_id: Mapped[int] = mapped_column(
        ForeignKey("translation.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source: Mapped[str] = mapped_column(Text, nullable=False)
    target: Mapped[str] = mapped_column(Text, nullable=False, default="")
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    model: Mapped[str] = mapped_column(String(200), nullable=False, default="unknown")
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=local_now, nullable=False)

    translation: Mapped[TranslationRow] = relationship(back_populates="history")


class ExamplePresetRow(Base):
    __tablename__ = "example_preset"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    examples: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=local_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=local_now, onupdate=local_now, nullable=False
    )


class PromptPresetRow(Base):
    __tablename__ = "prompt_presets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
