# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Permission catalog model."""

from sqlalchemy import Boolean, Enum, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, TimestampMixin
from src.models.enums import RiskLevel


class Permission(Base, TimestampMixin):
    """A definable capability identified by (resource, action, scope).

    Catalog entries are created once and toggled active/inactive; the
    identifying triple is never changed after creation.
    """

    __tablename__ = "permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource: Mapped[str] = mapped_column(String(100), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    scope: Mapped[str] = mapped_column(String(20), default="ALL", nullable=False)
    risk_level: Mapped[RiskLevel] = mapped_column(
        Enum(RiskLevel, native_enum=False, length=20),
        default=RiskLevel.LOW,
        nullable=False,
    )
    requires_mfa: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    audit_required: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("resource", "action", "scope", name="_permission_key_uc"),
    )

    @property
    def key(self) -> str:
        """Return the ``resource:action`` key of this permission."""
        return f"{self.resource}:{self.action}"
