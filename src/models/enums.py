# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Enumeration types for database models."""

from enum import Enum


class RiskLevel(str, Enum):
    """Risk classification of a catalog permission."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class PermissionSource(str, Enum):
    """Where an effective permission entry came from.

    ROLE      granted through a role assignment
    OVERRIDE  explicit per-user deny
    DIRECT    explicit per-user grant
    """

    ROLE = "role"
    OVERRIDE = "override"
    DIRECT = "direct"
