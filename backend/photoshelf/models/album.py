import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from photoshelf.core.database import Base, utcnow

ALBUM_NAME_MAX_LENGTH = 100


class Album(Base):
    __tablename__ = "albums"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(ALBUM_NAME_MAX_LENGTH), nullable=False)
    description = Column(Text, nullable=True)
    cover_photo_id = Column(UUID(as_uuid=True), ForeignKey("photos.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="albums")
    cover_photo = relationship("Photo", foreign_keys=[cover_photo_id])
    members = relationship("AlbumPhoto", back_populates="album", passive_deletes=True)


class AlbumPhoto(Base):
    __tablename__ = "album_photos"
    __table_args__ = (
        Index("ix_album_photos_album_id_added_at", "album_id", "added_at"),
        Index("ix_album_photos_photo_id", "photo_id"),
    )

    album_id = Column(UUID(as_uuid=True), ForeignKey("albums.id", ondelete="CASCADE"), primary_key=True, nullable=False)
    photo_id = Column(UUID(as_uuid=True), ForeignKey("photos.id", ondelete="CASCADE"), primary_key=True, nullable=False)
    position = Column(Integer, nullable=False)
    added_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    album = relationship("Album", back_populates="members")
    photo = relationship("Photo")
