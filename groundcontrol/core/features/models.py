"""
Feature Flag Models - SQLAlchemy models for feature flags.

Tables:
- feature_flags: Flag definitions
- rollout_rules: Prioritized conditional overrides per flag
"""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groundcontrol.models.base import Base, TimestampMixin


class FeatureFlagModel(Base, TimestampMixin):
    """
    Feature flag definition.

    The default value is stored as JSON next to its declared value_type.
    """

    __tablename__ = "feature_flags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    value_type: Mapped[str] = mapped_column(String(20), nullable=False)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
    due_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    rules: Mapped[list["RolloutRuleModel"]] = relationship(
        back_populates="flag",
        cascade="all, delete-orphan",
        order_by=lambda: [
            RolloutRuleModel.priority,
            RolloutRuleModel.created_at,
            RolloutRuleModel.id,
        ],
        lazy="selectin",
    )

    def __repr__(self) -> str:
        status = "ON" if self.enabled else "OFF"
        return f"<FeatureFlag {self.code} [{status}]>"


class RolloutRuleModel(Base, TimestampMixin):
    """
    Rollout rule attached to a flag.

    Conditions are stored as a JSON list of
    {"attribute", "operator", "value", "data_type"} objects.
    """

    __tablename__ = "rollout_rules"
    __table_args__ = (
        Index("idx_rollout_rules_flag_priority", "flag_id", "priority"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    flag_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("feature_flags.id", ondelete="CASCADE"),
        nullable=False,
    )

    priority: Mapped[int | None] = mapped_column(Integer, default=0, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    start_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    percentage: Mapped[float | None] = mapped_column(Float, nullable=True)
    distribution_key_attribute: Mapped[str | None] = mapped_column(String(100), nullable=True)

    value_bool: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    value_string: Mapped[str | None] = mapped_column(Text, nullable=True)
    value_int: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    value_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)
    variant_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    conditions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    flag: Mapped[FeatureFlagModel] = relationship(back_populates="rules")

    def __repr__(self) -> str:
        state = "active" if self.active else "inactive"
        return f"<RolloutRule {self.id} p={self.priority} [{state}]>"
