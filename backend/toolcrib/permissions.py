"""
Role and Capability Definitions

WHY: Centralized definitions ensure every entry point enforces the same
rules. Routes never compare role names directly; they ask for a capability
through @require_capability (decorators.py) or permission_service.

DESIGN PRINCIPLES:
- Three fixed roles, one per user
- Capabilities are granular (one concern per capability)
- Fail closed: unknown roles and unknown capabilities grant nothing
"""

# =============================================================================
# ROLES
# =============================================================================

ROLE_ADMIN = "admin"
ROLE_STAFF = "staff"
ROLE_USER_ADMIN = "user-admin"

ROLES = (ROLE_ADMIN, ROLE_STAFF, ROLE_USER_ADMIN)

# Roles the user API may assign. user-admin accounts are bootstrapped from
# the CLI only.
ASSIGNABLE_ROLES = (ROLE_ADMIN, ROLE_STAFF)


# =============================================================================
# CAPABILITIES
# =============================================================================

class Capability:
    """Capability codes checked by decorators and services."""
    MODIFY_CATALOG = "MODIFY_CATALOG"
    CHECK_IN_OUT = "CHECK_IN_OUT"
    MANAGE_USERS = "MANAGE_USERS"
    VIEW_INVENTORY = "VIEW_INVENTORY"


# Each capability is defined as: (code, name, description)
CAPABILITY_DEFINITIONS = [
    (
        Capability.MODIFY_CATALOG,
        "Modify Catalog",
        "Create, edit and delete items",
    ),
    (
        Capability.CHECK_IN_OUT,
        "Check In / Check Out",
        "Move items Inside/Outside through the transition engine",
    ),
    (
        Capability.MANAGE_USERS,
        "Manage Users",
        "List, create, edit and delete user accounts",
    ),
    (
        Capability.VIEW_INVENTORY,
        "View Inventory",
        "View dashboard, items and transaction history",
    ),
]


ROLE_CAPABILITIES = {
    ROLE_ADMIN: frozenset({
        Capability.MODIFY_CATALOG,
        Capability.CHECK_IN_OUT,
        Capability.MANAGE_USERS,
        Capability.VIEW_INVENTORY,
    }),
    ROLE_STAFF: frozenset({
        Capability.CHECK_IN_OUT,
        Capability.VIEW_INVENTORY,
    }),
    ROLE_USER_ADMIN: frozenset({
        Capability.MANAGE_USERS,
    }),
}


def capabilities_for_role(role: str | None) -> frozenset:
    return ROLE_CAPABILITIES.get(role, frozenset())


def role_has_capability(role: str | None, capability: str) -> bool:
    return capability in capabilities_for_role(role)


def describe_capabilities(codes) -> list[dict]:
    """Definitions for `codes`, in CAPABILITY_DEFINITIONS order."""
    wanted = set(codes)
    return [
        {"code": code, "name": name, "description": description}
        for code, name, description in CAPABILITY_DEFINITIONS
        if code in wanted
    ]
