import frappe

# Roles from widest to narrowest, with the hierarchy level each one is pinned to.
# A user holding several roles is scoped by the widest.
ROLE_LEVELS = [
	("Church Super Admin", None),
	("Church Admin", "church"),
	("Unit Admin", "unit"),
	("Kutayima Admin", "bavanakutayima"),
	("Church Member", "house"),
]

ADMIN_ROLES = ("Church Super Admin", "Church Admin", "Unit Admin", "Kutayima Admin")

LEVEL_ORDER = ("church", "unit", "bavanakutayima", "house")

# Column holding each hierarchy level, per doctype. "name" means the row is that level.
SCOPE_COLUMNS = {
	"Unit": {"church": "church", "unit": "name"},
	"Bavanakutayima": {"church": "church", "unit": "unit", "bavanakutayima": "name"},
	"House": {"church": "church", "unit": "unit", "bavanakutayima": "bavanakutayima", "house": "name"},
	"Member": {"church": "church", "unit": "unit", "bavanakutayima": "bavanakutayima", "house": "house"},
	"Campaign": {"church": "church"},
	"Stothrakazhcha": {"church": "church"},
	"News": {"church": "church"},
	"Church Event": {"church": "church"},
	"Campaign Due": {"church": "church", "unit": "unit", "bavanakutayima": "bavanakutayima", "house": "house"},
	"Stothrakazhcha Due": {"church": "church", "unit": "unit", "bavanakutayima": "bavanakutayima", "house": "house"},
	"Church Transaction": {"church": "church", "unit": "unit", "bavanakutayima": "bavanakutayima", "house": "house"},
}


def get_user_member(user=None):
	"""The Member record linked to this user, with its place in the hierarchy."""
	if not user:
		user = frappe.session.user
	return frappe.db.get_value(
		"Member",
		{"user": user},
		["name", "full_name", "house", "bavanakutayima", "unit", "church"],
		as_dict=True,
	)


def is_unscoped(user=None):
	"""Administrator, System Manager and Church Super Admin see every church."""
	if not user:
		user = frappe.session.user
	if user == "Administrator":
		return True
	roles = frappe.get_roles(user)
	return "System Manager" in roles or "Church Super Admin" in roles


def is_church_admin(user=None):
	"""Any of the admin roles, at any level."""
	if not user:
		user = frappe.session.user
	if is_unscoped(user):
		return True
	return bool(set(ADMIN_ROLES) & set(frappe.get_roles(user)))


def get_user_scope(user=None):
	"""Resolve the hierarchy slice a user may see.

	Returns None when the user is unscoped or holds none of the church roles.
	Otherwise returns a dict with the level the user is pinned to and the values
	of that level and all its ancestors. Values are None when the user has a
	church role but no linked Member record, which grants nothing.
	"""
	if not user:
		user = frappe.session.user
	if is_unscoped(user):
		return None

	roles = frappe.get_roles(user)
	level = next((lvl for role, lvl in ROLE_LEVELS if role in roles), None)
	if not level:
		return None

	member = get_user_member(user) or {}
	scope = frappe._dict(level=level, member=member.get("name"))
	for key in LEVEL_ORDER[: LEVEL_ORDER.index(level) + 1]:
		scope[key] = member.get(key)
	return scope


def get_scope_filter(doctype, user=None):
	"""(column, value) restricting doctype to the user's scope, or None when unrestricted."""
	scope = get_user_scope(user)
	if scope is None:
		return None

	columns = SCOPE_COLUMNS.get(doctype, {})
	# Use the narrowest level at or above the user's own that this doctype records.
	for level in reversed(LEVEL_ORDER[: LEVEL_ORDER.index(scope.level) + 1]):
		if level in columns:
			return columns[level], scope.get(level)
	return None


def get_scope_condition(doctype, user=None):
	scope_filter = get_scope_filter(doctype, user)
	if scope_filter is None:
		return ""
	column, value = scope_filter
	if not value:
		return "1=0"
	return "`tab{0}`.`{1}` = {2}".format(doctype, column, frappe.db.escape(value))


def has_scoped_permission(doc, ptype=None, user=None):
	"""Per-document check matching the list view conditions below."""
	scope_filter = get_scope_filter(doc.doctype, user)
	if scope_filter is None:
		return True
	column, value = scope_filter
	return bool(value) and doc.get(column) == value


def get_unit_permission_query(user):
	return get_scope_condition("Unit", user)


def get_bavanakutayima_permission_query(user):
	return get_scope_condition("Bavanakutayima", user)


def get_house_permission_query(user):
	return get_scope_condition("House", user)


def get_member_permission_query(user):
	return get_scope_condition("Member", user)


def get_campaign_permission_query(user):
	return get_scope_condition("Campaign", user)


def get_stothrakazhcha_permission_query(user):
	return get_scope_condition("Stothrakazhcha", user)


def get_campaign_due_permission_query(user):
	return get_scope_condition("Campaign Due", user)


def get_stothrakazhcha_due_permission_query(user):
	return get_scope_condition("Stothrakazhcha Due", user)


def get_church_transaction_permission_query(user):
	return get_scope_condition("Church Transaction", user)


def get_news_permission_query(user):
	return get_scope_condition("News", user)


def get_church_event_permission_query(user):
	return get_scope_condition("Church Event", user)
