"""Permission sets for Firmbook RBAC.

Design:
  - Employees carry department roles (``Employee.role``: Partner, Admin,
    Accounts, Staff, ...). Each role maps to a set of DEFAULT permissions
    defined here, not in the store.
  - `resolve_permissions(roles)` unions the defaults of every role the
    employee holds.
  - The effective set is embedded in the JWT, so route checks are
    token-only.

Permission naming: `<area>.<action>`
  Areas:   billing, invoices, reports, masters
  Actions: read, submit, write, admin, export
"""

from __future__ import annotations


# ── All known permissions ───────────────────────────────────

ALL_PERMISSIONS: set[str] = {
    # Billing queue
    "billing.read",           # view the "To Bill" dashboard and drafts
    "billing.submit",         # submit completed engagements for billing
    "billing.write",          # generate invoices, move bill status forward
    "billing.admin",          # override bill status (any transition)

    # Issued invoices
    "invoices.read",
    "invoices.write",

    # Reports
    "reports.read",
    "reports.export",

    # Reference data (firms, tax rates, sales items ...)
    "masters.read",
    "masters.write",
}


# ── Role → default permissions ──────────────────────────────

ROLE_DEFAULTS: dict[str, set[str]] = {
    "Partner": ALL_PERMISSIONS.copy(),
    "Admin": ALL_PERMISSIONS.copy(),

    "Accounts": {
        "billing.read", "billing.submit", "billing.write",
        "invoices.read", "invoices.write",
        "reports.read", "reports.export",
        "masters.read", "masters.write",
    },

    "Staff": {
        "billing.submit",
        "reports.read",
    },
}


# ── Resolution ──────────────────────────────────────────────

def resolve_permissions(roles: list[str]) -> list[str]:
    """Union of the defaults of every role, sorted for stable JWT claims.

    Unknown roles grant nothing.
    """
    perms: set[str] = set()
    for role in roles:
        perms |= ROLE_DEFAULTS.get(role.strip(), set())
    return sorted(perms)


def has_permission(user_permissions: list[str] | set[str], required: str) -> bool:
    """Check whether a permission set satisfies a requirement."""
    return required in user_permissions
