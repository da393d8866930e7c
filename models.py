"""
Database models for IPTV provider sync
"""

from datetime import datetime

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


class Provider(db.Model):  # type: ignore[name-defined]
    """Xtream Codes provider account - connection info plus last probe result"""

    __tablename__ = "providers"

    STATUS_ACTIVE = "Active"
    STATUS_INVALID_CREDENTIALS = "Invalid Credentials"
    STATUS_INVALID_DOMAIN = "Invalid Domain"
    STATUS_UNKNOWN = "Unknown"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    protocol = db.Column(db.String(10), nullable=False, default="http")  # http, https
    host = db.Column(db.String(255), nullable=False)
    server_port = db.Column(db.Integer, nullable=True)
    https_port = db.Column(db.Integer, nullable=True)
    username = db.Column(db.String(100), nullable=False)
    password = db.Column(db.String(100), nullable=False)
    user_agent = db.Column(db.String(255), default="okhttp/3.14.9")

    # Account state from the last credential probe
    status = db.Column(db.String(50), nullable=False, default=STATUS_UNKNOWN)
    auth = db.Column(db.Integer, default=0)
    account_status = db.Column(db.String(50))  # As reported by the provider ('Active', 'Expired', ...)
    active_connections = db.Column(db.String(20))
    max_connections = db.Column(db.Integer, default=0)
    exp_date = db.Column(db.String(50))
    is_trial = db.Column(db.Boolean, default=False)
    account_created_at = db.Column(db.String(50))

    # Server state from the last credential probe
    xui = db.Column(db.Boolean, default=False)
    version = db.Column(db.String(50))
    revision = db.Column(db.Integer, default=0)
    server_url = db.Column(db.String(255))
    timezone = db.Column(db.String(100))
    timestamp_now = db.Column(db.Integer, default=0)
    time_now = db.Column(db.String(50))

    last_checked = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    categories = db.relationship("Category", backref="provider", lazy=True, cascade="all, delete-orphan")
    channels = db.relationship("Channel", backref="provider", lazy=True, cascade="all, delete-orphan")

    def to_dict(self):
        """Serialize without the password"""
        return {
            "id": self.id,
            "name": self.name,
            "protocol": self.protocol,
            "host": self.host,
            "server_port": self.server_port,
            "https_port": self.https_port,
            "username": self.username,
            "user_agent": self.user_agent,
            "status": self.status,
            "auth": self.auth,
            "account_status": self.account_status,
            "active_connections": self.active_connections,
            "max_connections": self.max_connections,
            "exp_date": self.exp_date,
            "is_trial": self.is_trial,
            "xui": self.xui,
            "version": self.version,
            "revision": self.revision,
            "server_url": self.server_url,
            "timezone": self.timezone,
            "timestamp_now": self.timestamp_now,
            "time_now": self.time_now,
            "last_checked": self.last_checked.isoformat() if self.last_checked else None,
        }

    def __repr__(self):
        return f"<Provider {self.name} ({self.status})>"


class Category(db.Model):  # type: ignore[name-defined]
    """Category pulled from a provider"""

    __tablename__ = "categories"

    TYPE_LIVE = "live"
    TYPE_MOVIE = "movie"
    TYPE_SERIES = "series"
    TYPES = (TYPE_LIVE, TYPE_MOVIE, TYPE_SERIES)

    id = db.Column(db.Integer, primary_key=True)
    provider_id = db.Column(db.Integer, db.ForeignKey("providers.id"), nullable=False, index=True)
    external_id = db.Column(db.String(50), nullable=False)  # category_id from the provider
    name = db.Column(db.String(200), nullable=False, default="")
    type = db.Column(db.String(10), nullable=False, default=TYPE_LIVE)
    # Free-form upstream fields; "metadata" is reserved on declarative models
    meta = db.Column("metadata", db.JSON, default=dict)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (db.UniqueConstraint("provider_id", "external_id", name="_provider_category_uc"),)

    def to_dict(self):
        return {
            "id": self.id,
            "provider_id": self.provider_id,
            "external_id": self.external_id,
            "name": self.name,
            "type": self.type,
            "metadata": self.meta or {},
        }

    def __repr__(self):
        return f"<Category {self.name} (provider={self.provider_id})>"


class Channel(db.Model):  # type: ignore[name-defined]
    """Live channel pulled from a provider, with its last validation result"""

    __tablename__ = "channels"

    id = db.Column(db.Integer, primary_key=True)
    provider_id = db.Column(db.Integer, db.ForeignKey("providers.id"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    external_id = db.Column(db.String(50), nullable=False)  # stream_id from the provider
    name = db.Column(db.String(500), nullable=False)
    icon = db.Column(db.String(500), default="")
    meta = db.Column("metadata", db.JSON, default=dict)

    # Last stream validation
    validated_at = db.Column(db.DateTime, nullable=True)
    validation_result = db.Column(db.JSON, nullable=True)  # {valid, status?, error?, url}

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    category = db.relationship("Category", backref="channels")

    __table_args__ = (
        db.UniqueConstraint("provider_id", "external_id", name="_provider_stream_uc"),
        db.Index("idx_channel_provider_category", "provider_id", "category_id"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "provider_id": self.provider_id,
            "category_id": self.category_id,
            "external_id": self.external_id,
            "name": self.name,
            "icon": self.icon or "",
            "metadata": self.meta or {},
            "validated_at": self.validated_at.isoformat() if self.validated_at else None,
            "validation_result": self.validation_result,
        }

    def __repr__(self):
        return f"<Channel {self.name} (provider={self.provider_id})>"
