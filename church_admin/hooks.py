from . import __version__ as app_version

app_name = "church_admin"
app_title = "Church Admin"
app_publisher = "Parish Systems"
app_description = "Church Administration and Member Contribution Tracking"
app_email = "admin@parishsystems.org"
app_license = "MIT"

# Required apps
required_apps = ["frappe"]

# Scheduled Tasks
# Dues are swept once a day at 06:00
# --------------------------------------------------------------------------
scheduler_events = {
    "cron": {
        "0 6 * * *": [
            "church_admin.tasks.process_all_dues",
        ],
    },
    "daily": [
        "church_admin.tasks.audit_event_totals",
    ],
    "weekly": [
        "church_admin.tasks.weekly_contribution_summary",
    ],
}

# Roles and settings created on install
# --------------------------------------------------------------------------
after_install = "church_admin.setup.after_install"

# Bearer JWT authentication for the role dashboards
# --------------------------------------------------------------------------
auth_hooks = [
    "church_admin.auth.validate_bearer_token",
]

# Jinja template filters
# --------------------------------------------------------------------------
jinja = {
    "methods": [
        "church_admin.utils.format_currency_short",
    ],
}

# Fixtures - export these doctypes as JSON for version control
# --------------------------------------------------------------------------
fixtures = [
    {
        "dt": "Role",
        "filters": [["name", "in", [
            "Church Super Admin",
            "Church Admin",
            "Unit Admin",
            "Kutayima Admin",
            "Church Member",
        ]]],
    },
]

# Permission Query Conditions - scope list views to the user's place in the hierarchy.
# These add WHERE clauses so admins only see rows under their church, unit or kutayima.
# --------------------------------------------------------------------------
permission_query_conditions = {
    "Unit": "church_admin.permissions.get_unit_permission_query",
    "Bavanakutayima": "church_admin.permissions.get_bavanakutayima_permission_query",
    "House": "church_admin.permissions.get_house_permission_query",
    "Member": "church_admin.permissions.get_member_permission_query",
    "Campaign": "church_admin.permissions.get_campaign_permission_query",
    "Stothrakazhcha": "church_admin.permissions.get_stothrakazhcha_permission_query",
    "Campaign Due": "church_admin.permissions.get_campaign_due_permission_query",
    "Stothrakazhcha Due": "church_admin.permissions.get_stothrakazhcha_due_permission_query",
    "Church Transaction": "church_admin.permissions.get_church_transaction_permission_query",
    "News": "church_admin.permissions.get_news_permission_query",
    "Church Event": "church_admin.permissions.get_church_event_permission_query",
}

# Has Permission - per-document checks mirroring the list conditions
# --------------------------------------------------------------------------
has_permission = {
    "Unit": "church_admin.permissions.has_scoped_permission",
    "Bavanakutayima": "church_admin.permissions.has_scoped_permission",
    "House": "church_admin.permissions.has_scoped_permission",
    "Member": "church_admin.permissions.has_scoped_permission",
    "Campaign": "church_admin.permissions.has_scoped_permission",
    "Stothrakazhcha": "church_admin.permissions.has_scoped_permission",
    "Campaign Due": "church_admin.permissions.has_scoped_permission",
    "Stothrakazhcha Due": "church_admin.permissions.has_scoped_permission",
    "Church Transaction": "church_admin.permissions.has_scoped_permission",
    "News": "church_admin.permissions.has_scoped_permission",
    "Church Event": "church_admin.permissions.has_scoped_permission",
}
