import frappe
from frappe.utils import cint

from church_admin.permissions import ADMIN_ROLES, ROLE_LEVELS


def after_install():
    """Run after app installation to set up roles and defaults."""
    create_roles()
    create_default_settings()
    frappe.db.commit()
    print("Church Admin app setup complete.")


def create_roles():
    """Make sure every role in the scoping table exists.

    Only the admin roles get desk access; members use the portal API. An existing
    role whose desk access drifted is put back. Returns the names of roles created.
    """
    created = []
    for role_name, level in ROLE_LEVELS:
        desk_access = 1 if role_name in ADMIN_ROLES else 0
        if frappe.db.exists("Role", role_name):
            if cint(frappe.db.get_value("Role", role_name, "desk_access")) != desk_access:
                frappe.db.set_value("Role", role_name, "desk_access", desk_access)
            continue

        frappe.get_doc({
            "doctype": "Role",
            "role_name": role_name,
            "desk_access": desk_access,
            "is_custom": 1,
        }).insert(ignore_permissions=True)
        created.append(role_name)
        print(f"  Created role: {role_name} (scoped to {level or 'every church'})")
    return created


def create_default_settings():
    """Initialise Church Settings with defaults, leaving values already set alone."""
    settings = frappe.get_single("Church Settings")
    defaults = {
        "receipt_prefix": "RCP",
        "access_token_expiry_minutes": 15,
        "refresh_token_expiry_days": 7,
    }
    changed = False
    for field, value in defaults.items():
        if not settings.get(field):
            settings.set(field, value)
            changed = True

    if changed:
        settings.save(ignore_permissions=True)
        print("  Created default Church Settings")
