"""SQLAlchemy models for database."""
from sqlalchemy import (
    Column, Integer, BigInteger, String, Boolean, DateTime, Text, ForeignKey, JSON, Float,
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime

Base = declarative_base()


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(255), nullable=False, unique=True)
    email = Column(String(255), nullable=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class MediaItem(Base):
    """Film ou série suivi, synchronisé depuis Sonarr/Radarr."""
    __tablename__ = "media_items"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(500), nullable=False)
    type = Column(String(50), nullable=False, index=True)  # movie, series
    tmdb_id = Column(Integer, nullable=True, index=True)
    tvdb_id = Column(Integer, nullable=True, index=True)
    sonarr_id = Column(Integer, nullable=True, unique=True)
    radarr_id = Column(Integer, nullable=True, unique=True)
    overseerr_request_id = Column(Integer, nullable=True)
    requested_by_user_id = Column(Integer, nullable=True, index=True)  # id utilisateur Overseerr
    file_path = Column(Text, nullable=True)
    file_size = Column(BigInteger, default=0)  # 0 = pas encore téléchargé
    added_date = Column(DateTime, nullable=True)
    last_synced_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    torrents = relationship(
        "Torrent", back_populates="media_item", cascade="all",
        passive_deletes=True, order_by="Torrent.id",
    )
    watch_history = relationship(
        "WatchHistory", back_populates="media_item", cascade="all",
        passive_deletes=True,
    )

    @property
    def is_downloaded(self) -> bool:
        return bool(self.file_path) and (self.file_size or 0) > 0


class Torrent(Base):
    """Torrent qBittorrent, identifié par son hash."""
    __tablename__ = "torrents"

    id = Column(Integer, primary_key=True, index=True)
    media_item_id = Column(
        Integer, ForeignKey("media_items.id", ondelete="CASCADE"), nullable=True, index=True
    )
    hash = Column(String(64), nullable=False, unique=True)
    name = Column(String(500), nullable=True)
    tracker_id = Column(Integer, nullable=True, index=True)  # id indexer Prowlarr
    tracker_name = Column(String(255), nullable=True)
    tracker_type = Column(String(50), nullable=True)  # public, private, unknown
    added_date = Column(DateTime, nullable=True)
    seeding_time_seconds = Column(BigInteger, default=0, nullable=False)
    upload_bytes = Column(BigInteger, default=0, nullable=False)
    download_bytes = Column(BigInteger, default=0, nullable=False)
    ratio = Column(Float, default=0.0, nullable=False)
    seeding_required_seconds = Column(BigInteger, nullable=True)  # None = pas d'exigence
    seeding_required_ratio = Column(Float, nullable=True)
    is_seeding = Column(Boolean, default=True, nullable=False)
    last_synced_at = Column(DateTime, default=datetime.utcnow)

    media_item = relationship("MediaItem", back_populates="torrents")


class SeedingOverride(Base):
    """Exigence de seed configurée par l'admin pour un tracker."""
    __tablename__ = "seeding_overrides"

    id = Column(Integer, primary_key=True, index=True)
    tracker_id = Column(Integer, nullable=True, unique=True)
    tracker_name = Column(String(255), nullable=True, index=True)
    min_seeding_time_seconds = Column(BigInteger, nullable=True)
    min_seeding_ratio = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Setting(Base):
    __tablename__ = "settings"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=True)
    type = Column(String(50), default="string")  # string, integer, boolean, json
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class WatchHistory(Base):
    """Historique de visionnage par utilisateur."""
    __tablename__ = "watch_history"

    id = Column(Integer, primary_key=True, index=True)
    media_item_id = Column(
        Integer, ForeignKey("media_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, nullable=True)
    last_watched_at = Column(DateTime, nullable=True)
    play_count = Column(Integer, default=0, nullable=False)
    last_synced_at = Column(DateTime, default=datetime.utcnow)

    media_item = relationship("MediaItem", back_populates="watch_history")


class AuditLog(Base):
    """Trace immuable d'une suppression."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    action = Column(String(50), nullable=False, index=True)  # delete
    media_item_id = Column(
        Integer, ForeignKey("media_items.id", ondelete="SET NULL"), nullable=True, index=True
    )
    media_title = Column(String(500), nullable=True)
    media_type = Column(String(50), nullable=True)
    details = Column(JSON, default=dict)  # {message, errors}
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
