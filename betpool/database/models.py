"""
SQLAlchemy ORM models for the group betting platform.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from betpool.database.db import Base


class UserRole(str, enum.Enum):
    """User role enum."""

    ADMIN = "admin"
    USER = "user"


class UserStatus(str, enum.Enum):
    """Account lifecycle status enum."""

    PENDING = "pending"
    ACTIVE = "active"
    DEACTIVATED = "deactivated"


class BetStatus(str, enum.Enum):
    """Bet lifecycle status enum."""

    ACTIVE = "active"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"


class BetVisibility(str, enum.Enum):
    """Bet visibility enum."""

    PUBLIC = "public"
    PRIVATE = "private"


class NotificationType(str, enum.Enum):
    """Notification type enum."""

    NEW_BET = "new_bet"
    BET_RESOLVED = "bet_resolved"
    BET_IN_PROGRESS = "bet_in_progress"
    NEW_PARTICIPANT = "new_participant"
    NEW_USER = "new_user"
    ACCOUNT_APPROVED = "account_approved"
    ACCOUNT_REACTIVATED = "account_reactivated"


class User(Base):
    """User accounts with email/password authentication."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=False, unique=True)  # Stored lower-cased
    full_name = Column(String, nullable=True)
    password_hash = Column(String, nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)
    status = Column(String(20), nullable=False, default=UserStatus.PENDING.value)
    has_accepted_terms = Column(Boolean, default=False, nullable=False)
    accepted_terms_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    participations = relationship("BetParticipation", back_populates="user")

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'user')", name="ck_users_role"),
        CheckConstraint(
            "status IN ('pending', 'active', 'deactivated')", name="ck_users_status"
        ),
        Index("idx_users_status", "status"),
    )


class Bet(Base):
    """A wager proposition with mutually exclusive options."""

    __tablename__ = "bets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    amount = Column(Integer, nullable=False)  # Nominal stake, no payment integration
    status = Column(String(20), nullable=False, default=BetStatus.ACTIVE.value)
    visibility = Column(String(20), nullable=False, default=BetVisibility.PUBLIC.value)
    winning_option = Column(String, nullable=True)  # Winning option id, stringified
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    options = relationship(
        "BetOption",
        back_populates="bet",
        cascade="all, delete-orphan",
        order_by="BetOption.id",
    )
    participations = relationship(
        "BetParticipation", back_populates="bet", cascade="all, delete-orphan"
    )
    assignees = relationship(
        "BetAssignee", back_populates="bet", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_bets_amount_positive"),
        CheckConstraint(
            "status IN ('active', 'in-progress', 'resolved')", name="ck_bets_status"
        ),
        CheckConstraint("visibility IN ('public', 'private')", name="ck_bets_visibility"),
        Index("idx_bets_status", "status"),
        Index("idx_bets_visibility", "visibility"),
        Index("idx_bets_created_at", "created_at"),
    )


class BetOption(Base):
    """One selectable outcome of a bet."""

    __tablename__ = "bet_options"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bet_id = Column(Integer, ForeignKey("bets.id", ondelete="CASCADE"), nullable=False)
    option_text = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    bet = relationship("Bet", back_populates="options")

    __table_args__ = (Index("idx_bet_options_bet", "bet_id"),)


class BetParticipation(Base):
    """A user's one-time selection of an option on a bet."""

    __tablename__ = "bet_participations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    bet_id = Column(Integer, ForeignKey("bets.id", ondelete="CASCADE"), nullable=False)
    selected_option_id = Column(Integer, ForeignKey("bet_options.id"), nullable=True)
    is_winner = Column(Boolean, nullable=True)  # Set only when the bet is resolved
    participated_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="participations")
    bet = relationship("Bet", back_populates="participations")
    selected_option = relationship("BetOption")

    __table_args__ = (
        UniqueConstraint("user_id", "bet_id", name="uq_bet_participations_user_bet"),
        Index("idx_bet_participations_bet", "bet_id"),
    )


class BetAssignee(Base):
    """Grants a user visibility and participation rights on a private bet."""

    __tablename__ = "bet_assignees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bet_id = Column(Integer, ForeignKey("bets.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    assigned_at = Column(DateTime(timezone=True), server_default=func.now())
    assigned_by = Column(Integer, ForeignKey("users.id"), nullable=False)

    # Relationships
    bet = relationship("Bet", back_populates="assignees")
    user = relationship("User", foreign_keys=[user_id])
    assigner = relationship("User", foreign_keys=[assigned_by])

    __table_args__ = (
        UniqueConstraint("bet_id", "user_id", name="uq_bet_assignees_bet_user"),
        Index("idx_bet_assignees_user", "user_id"),
    )


class Notification(Base):
    """User notifications for in-app messaging."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    type = Column(String, nullable=False)  # NotificationType enum value
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(Text, nullable=True)  # JSON string for flexible metadata (bet_id, etc.)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    link_url = Column(String(500), nullable=True)  # Navigation target
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    user = relationship("User", backref="notifications")

    __table_args__ = (
        Index("idx_notifications_user_unread", "user_id", "is_read", "created_at"),
        Index("idx_notifications_user_created", "user_id", "created_at"),
    )
