# src/rbac/permissions.py
"""Core permission catalog seeded on first start."""

CORE_PERMISSIONS = [
    # System
    {"name": "system.settings.read", "display_name": "View system settings", "category": "system", "resource": "settings", "action": "read", "risk_level": "LOW"},
    {"name": "system.settings.write", "display_name": "Change system settings", "category": "system", "resource": "settings", "action": "write", "risk_level": "HIGH", "requires_mfa": True},
    {"name": "system.logs.read", "display_name": "View system logs", "category": "system", "resource": "logs", "action": "read", "risk_level": "MEDIUM"},
    {"name": "system.audit.read", "display_name": "View audit trail", "category": "system", "resource": "audit", "action": "read", "risk_level": "MEDIUM"},
    {"name": "system.backup.read", "display_name": "View backups", "category": "system", "resource": "backups", "action": "read", "risk_level": "LOW"},
    {"name": "system.backup.create", "display_name": "Create backups", "category": "system", "resource": "backups", "action": "create", "risk_level": "MEDIUM"},
    {"name": "system.backup.restore", "display_name": "Restore backups", "category": "system", "resource": "backups", "action": "restore", "risk_level": "CRITICAL", "requires_mfa": True},
    # Users, roles and permissions
    {"name": "users.read", "display_name": "View users", "category": "users", "resource": "users", "action": "read", "risk_level": "LOW"},
    {"name": "users.create", "display_name": "Create users", "category": "users", "resource": "users", "action": "create", "risk_level": "HIGH", "requires_mfa": True},
    {"name": "users.update", "display_name": "Edit users", "category": "users", "resource": "users", "action": "update", "risk_level": "HIGH", "requires_mfa": True},
    {"name": "users.delete", "display_name": "Delete users", "category": "users", "resource": "users", "action": "delete", "risk_level": "CRITICAL", "requires_mfa": True},
    {"name": "roles.read", "display_name": "View roles", "category": "users", "resource": "roles", "action": "read", "risk_level": "LOW"},
    {"name": "roles.create", "display_name": "Create roles", "category": "users", "resource": "roles", "action": "create", "risk_level": "CRITICAL", "requires_mfa": True},
    {"name": "roles.update", "display_name": "Edit roles", "category": "users", "resource": "roles", "action": "update", "risk_level": "CRITICAL", "requires_mfa": True},
    {"name": "roles.delete", "display_name": "Delete roles", "category": "users", "resource": "roles", "action": "delete", "risk_level": "CRITICAL", "requires_mfa": True},
    {"name": "roles.assign", "display_name": "Assign roles", "category": "users", "resource": "roles", "action": "assign", "risk_level": "HIGH", "requires_mfa": True},
    {"name": "permissions.read", "display_name": "View permissions", "category": "users", "resource": "permissions", "action": "read", "risk_level": "LOW"},
    {"name": "permissions.create", "display_name": "Create permissions", "category": "users", "resource": "permissions", "action": "create", "risk_level": "CRITICAL", "requires_mfa": True},
    {"name": "permissions.grant", "display_name": "Grant permissions", "category": "users", "resource": "permissions", "action": "grant", "risk_level": "CRITICAL", "requires_mfa": True},
    # Assets
    {"name": "equipment.read", "display_name": "View equipment", "category": "assets", "resource": "equipment", "action": "read", "risk_level": "LOW"},
    {"name": "equipment.create", "display_name": "Create equipment", "category": "assets", "resource": "equipment", "action": "create", "risk_level": "MEDIUM"},
    {"name": "equipment.update", "display_name": "Edit equipment", "category": "assets", "resource": "equipment", "action": "update", "risk_level": "MEDIUM"},
    {"name": "equipment.delete", "display_name": "Delete equipment", "category": "assets", "resource": "equipment", "action": "delete", "risk_level": "HIGH"},
    {"name": "equipment.assign", "display_name": "Assign equipment", "category": "assets", "resource": "equipment", "action": "assign", "risk_level": "MEDIUM"},
    {"name": "printers.read", "display_name": "View printers", "category": "assets", "resource": "printers", "action": "read", "risk_level": "LOW"},
    {"name": "printers.create", "display_name": "Create printers", "category": "assets", "resource": "printers", "action": "create", "risk_level": "MEDIUM"},
    {"name": "printers.update", "display_name": "Edit printers", "category": "assets", "resource": "printers", "action": "update", "risk_level": "MEDIUM"},
    {"name": "printers.delete", "display_name": "Delete printers", "category": "assets", "resource": "printers", "action": "delete", "risk_level": "HIGH"},
    {"name": "inventory.read", "display_name": "View inventory", "category": "assets", "resource": "inventory", "action": "read", "risk_level": "LOW"},
    {"name": "inventory.update", "display_name": "Manage inventory stock", "category": "assets", "resource": "inventory", "action": "update", "risk_level": "MEDIUM"},
    # Support
    {"name": "tickets.read", "display_name": "View tickets", "category": "support", "resource": "tickets", "action": "read", "risk_level": "LOW"},
    {"name": "tickets.read.own", "display_name": "View own tickets", "category": "support", "resource": "tickets", "action": "read", "scope": "OWN", "risk_level": "LOW"},
    {"name": "tickets.create", "display_name": "Create tickets", "category": "support", "resource": "tickets", "action": "create", "risk_level": "LOW"},
    {"name": "tickets.update", "display_name": "Edit tickets", "category": "support", "resource": "tickets", "action": "update", "risk_level": "MEDIUM"},
    {"name": "tickets.close", "display_name": "Close tickets", "category": "support", "resource": "tickets", "action": "close", "risk_level": "MEDIUM"},
    {"name": "tickets.delete", "display_name": "Delete tickets", "category": "support", "resource": "tickets", "action": "delete", "risk_level": "HIGH", "requires_mfa": True},
    # HR
    {"name": "employees.read", "display_name": "View employees", "category": "hr", "resource": "employees", "action": "read", "risk_level": "LOW"},
    {"name": "employees.create", "display_name": "Create employees", "category": "hr", "resource": "employees", "action": "create", "risk_level": "MEDIUM"},
    {"name": "employees.update", "display_name": "Edit employees", "category": "hr", "resource": "employees", "action": "update", "risk_level": "MEDIUM"},
    {"name": "employees.delete", "display_name": "Delete employees", "category": "hr", "resource": "employees", "action": "delete", "risk_level": "HIGH", "requires_mfa": True},
    # Finance
    {"name": "purchases.read", "display_name": "View purchases", "category": "finance", "resource": "purchases", "action": "read", "risk_level": "LOW"},
    {"name": "purchases.create", "display_name": "Create purchase requests", "category": "finance", "resource": "purchases", "action": "create", "risk_level": "MEDIUM"},
    {"name": "purchases.approve", "display_name": "Approve purchases", "category": "finance", "resource": "purchases", "action": "approve", "risk_level": "HIGH", "requires_mfa": True},
    # Catch-all used by the super administrator role
    {"name": "all.manage", "display_name": "Full access", "category": "system", "resource": "*", "action": "*", "risk_level": "CRITICAL", "requires_mfa": True},
]
