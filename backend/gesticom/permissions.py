"""
Permission System Constants and Definitions

WHY: Centralized permission definitions ensure consistency across the application.
All permission codes and role mappings defined here.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- Roles are a closed set (owner, worker); there is no per-user override
- Default role mappings follow principle of least privilege
- Owner has all permissions
"""

from .models.auth import ROLE_OWNER, ROLE_WORKER


# =============================================================================
# PERMISSION CATEGORIES
# =============================================================================

class PermissionCategory:
    """Permission categories for organization."""
    INVENTORY = "INVENTORY"
    SALES = "SALES"
    USERS = "USERS"
    TIMEKEEPING = "TIMEKEEPING"
    NOTIFICATIONS = "NOTIFICATIONS"
    REPORTS = "REPORTS"


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (code, name, description, category)
PERMISSION_DEFINITIONS = [
    # INVENTORY PERMISSIONS
    ("VIEW_INVENTORY", "View Inventory", "List and view products and stock", PermissionCategory.INVENTORY),
    ("MANAGE_PRODUCTS", "Manage Products", "Create, edit and delete products", PermissionCategory.INVENTORY),

    # SALES PERMISSIONS
    ("CREATE_SALE", "Create Sale", "Register a sale from a cart", PermissionCategory.SALES),
    ("VIEW_SALES", "View Sales", "View sale history", PermissionCategory.SALES),
    ("VOID_SALE", "Void Sale", "Void a sale and restore its stock", PermissionCategory.SALES),

    # USER PERMISSIONS
    ("VIEW_USERS", "View Users", "List user accounts", PermissionCategory.USERS),
    ("MANAGE_USERS", "Manage Users", "Create, edit, enable/disable and delete users", PermissionCategory.USERS),

    # TIMEKEEPING PERMISSIONS
    ("CLOCK_IN_OUT", "Clock In/Out", "Mark own attendance checkpoints", PermissionCategory.TIMEKEEPING),
    ("VIEW_TIMEKEEPING", "View Timekeeping", "View attendance reports for all workers", PermissionCategory.TIMEKEEPING),

    # NOTIFICATION PERMISSIONS
    ("VIEW_NOTIFICATIONS", "View Notifications", "View and acknowledge notifications", PermissionCategory.NOTIFICATIONS),
    ("MANAGE_NOTIFICATIONS", "Manage Notifications", "Create, archive and delete notifications; configure thresholds", PermissionCategory.NOTIFICATIONS),

    # REPORT PERMISSIONS
    ("VIEW_DASHBOARD", "View Dashboard", "View dashboard metrics", PermissionCategory.REPORTS),
    ("VIEW_SALES_REPORTS", "View Sales Reports", "View aggregated sales reports", PermissionCategory.REPORTS),
]

PERMISSION_CODES = {code for code, _, _, _ in PERMISSION_DEFINITIONS}


# =============================================================================
# DEFAULT ROLE PERMISSIONS
# =============================================================================

DEFAULT_ROLE_PERMISSIONS = {
    # Owner gets ALL permissions
    ROLE_OWNER: sorted(PERMISSION_CODES),
    ROLE_WORKER: [
        "VIEW_INVENTORY",
        "CREATE_SALE",
        "VIEW_SALES",
        "CLOCK_IN_OUT",
        "VIEW_NOTIFICATIONS",
        "VIEW_DASHBOARD",
    ],
}


def get_role_permissions(role: str) -> set[str]:
    """Permission codes granted to a role (empty for unknown roles)."""
    return set(DEFAULT_ROLE_PERMISSIONS.get(role, ()))


def role_has_permission(role: str, permission_code: str) -> bool:
    return permission_code in get_role_permissions(role)
