# src/rbac/roles.py
from .permissions import CORE_PERMISSIONS

SUPERUSER_ROLE = "SUPER_ADMIN"

_ALL_KEYS = [f"{p['resource']}:{p['action']}" for p in CORE_PERMISSIONS]

# Default roles seeded on first run. All of them are system roles: they can be
# assigned and cloned but neither edited nor deleted through the service.
DEFAULT_ROLES = [
    {
        "name": SUPERUSER_ROLE,
        "display_name": "Super Administrator",
        "description": "Unrestricted access to the whole system.",
        "color": "#dc2626",
        "icon": "crown",
        "level": 100,
        "priority": 1000,
        "permissions": ["*:*"],
    },
    {
        "name": "ADMIN",
        "display_name": "Administrator",
        "description": "Broad administrative access without backup restore or permission grants.",
        "color": "#7c3aed",
        "icon": "shield-check",
        "level": 90,
        "priority": 900,
        "permissions": [
            key
            for key in _ALL_KEYS
            if key not in ("*:*", "backups:restore", "permissions:grant")
        ],
    },
    {
        "name": "IT_MANAGER",
        "display_name": "IT Manager",
        "description": "Manages IT operations, assets and support.",
        "color": "#059669",
        "icon": "briefcase",
        "level": 80,
        "priority": 800,
        "permissions": [
            "equipment:read",
            "equipment:create",
            "equipment:update",
            "equipment:delete",
            "equipment:assign",
            "printers:read",
            "printers:create",
            "printers:update",
            "printers:delete",
            "inventory:read",
            "inventory:update",
            "tickets:read",
            "tickets:create",
            "tickets:update",
            "tickets:close",
            "tickets:delete",
            "employees:read",
            "employees:create",
            "employees:update",
            "purchases:read",
            "purchases:create",
            "purchases:approve",
            "users:read",
            "roles:read",
            "roles:assign",
            "logs:read",
            "audit:read",
        ],
    },
    {
        "name": "TECHNICIAN",
        "display_name": "IT Technician",
        "description": "Maintains equipment and works tickets.",
        "color": "#0ea5e9",
        "icon": "wrench",
        "level": 70,
        "priority": 700,
        "permissions": [
            "equipment:read",
            "equipment:update",
            "equipment:assign",
            "printers:read",
            "printers:update",
            "inventory:read",
            "inventory:update",
            "tickets:read",
            "tickets:create",
            "tickets:update",
            "tickets:close",
            "employees:read",
        ],
    },
    {
        "name": "SUPPORT",
        "display_name": "Support",
        "description": "Resolves basic tickets.",
        "color": "#f59e0b",
        "icon": "headphones",
        "level": 60,
        "priority": 600,
        "permissions": [
            "equipment:read",
            "printers:read",
            "tickets:read",
            "tickets:create",
            "tickets:update",
            "employees:read",
        ],
    },
    {
        "name": "USER",
        "display_name": "User",
        "description": "Standard user with everyday permissions.",
        "color": "#6b7280",
        "icon": "user",
        "level": 50,
        "priority": 500,
        "permissions": ["tickets:create", "equipment:read"],
    },
    {
        "name": "VIEWER",
        "display_name": "Viewer",
        "description": "Read-only access.",
        "color": "#9ca3af",
        "icon": "eye",
        "level": 40,
        "priority": 400,
        "permissions": [
            "equipment:read",
            "printers:read",
            "inventory:read",
            "tickets:read",
            "employees:read",
            "purchases:read",
        ],
    },
]
