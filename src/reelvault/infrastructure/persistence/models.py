"""SQLAlchemy ORM models for the media library catalog.

The schema itself is owned by the alembic migrations in ``migrations/versions``;
these models must always match the head revision.
"""

from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


scene_tags = Table(
    "scene_tags",
    Base.metadata,
    Column("scene_id", ForeignKey("scenes.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)

image_tags = Table(
    "image_tags",
    Base.metadata,
    Column("image_id", ForeignKey("images.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)

gallery_tags = Table(
    "gallery_tags",
    Base.metadata,
    Column(
        "gallery_id", ForeignKey("galleries.id", ondelete="CASCADE"), primary_key=True
    ),
    Column("tag_id", ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class TagModel(Base):
    """A label attached to library entries."""

    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    aliases: Mapped[list["TagAliasModel"]] = relationship(
        back_populates="tag", cascade="all, delete-orphan"
    )


class TagAliasModel(Base):
    """Alternative name a tag also matches on."""

    __tablename__ = "tag_aliases"

    tag_id: Mapped[int] = mapped_column(
        ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True
    )
    alias: Mapped[str] = mapped_column(String(255), primary_key=True)

    tag: Mapped[TagModel] = relationship(back_populates="aliases")


class SceneModel(Base):
    """A video file in the library."""

    __tablename__ = "scenes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    path: Mapped[str] = mapped_column(String(4096), unique=True, nullable=False)
    checksum: Mapped[str | None] = mapped_column(String(64), index=True)
    title: Mapped[str | None] = mapped_column(String(1024))
    details: Mapped[str | None] = mapped_column(Text)
    duration: Mapped[float | None] = mapped_column(Float)
    interactive: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    tags: Mapped[list[TagModel]] = relationship(secondary=scene_tags)


class ImageModel(Base):
    """An image file in the library."""

    __tablename__ = "images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    path: Mapped[str] = mapped_column(String(4096), unique=True, nullable=False)
    checksum: Mapped[str | None] = mapped_column(String(64), index=True)
    title: Mapped[str | None] = mapped_column(String(1024))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    tags: Mapped[list[TagModel]] = relationship(secondary=image_tags)


class GalleryModel(Base):
    """A folder or archive of images."""

    __tablename__ = "galleries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    path: Mapped[str | None] = mapped_column(String(4096), unique=True)
    title: Mapped[str | None] = mapped_column(String(1024))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    tags: Mapped[list[TagModel]] = relationship(secondary=gallery_tags)


__all__ = [
    "Base",
    "GalleryModel",
    "ImageModel",
    "SceneModel",
    "TagAliasModel",
    "TagModel",
    "gallery_tags",
    "image_tags",
    "scene_tags",
]
