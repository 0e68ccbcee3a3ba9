import frappe
from frappe.utils import cint

# Each level of the org tree: (doctype, parent link field, number field)
LEVELS = {
    "Church": (None, "church_number"),
    "Unit": ("church", "unit_number"),
    "Bavanakutayima": ("unit", "bavanakutayima_number"),
    "House": ("bavanakutayima", "house_number"),
    "Member": ("house", "member_number"),
}


def next_number(doctype, parent_value=None):
    """Next free sequence number for a new child under parent_value."""
    parent_field, number_field = LEVELS[doctype]
    filters = {parent_field: parent_value} if parent_field else {}
    current = frappe.db.get_value(doctype, filters, f"MAX({number_field})")
    return cint(current) + 1


def set_sequence_number(doc):
    """Assign the next number when blank and reject duplicates within the parent."""
    parent_field, number_field = LEVELS[doc.doctype]
    parent_value = doc.get(parent_field) if parent_field else None

    if not cint(doc.get(number_field)):
        doc.set(number_field, next_number(doc.doctype, parent_value))
        return

    filters = {number_field: doc.get(number_field), "name": ("!=", doc.name)}
    if parent_field:
        filters[parent_field] = parent_value
    if frappe.db.exists(doc.doctype, filters):
        scope = f" in {parent_value}" if parent_value else ""
        frappe.throw(
            f"{doc.meta.get_label(number_field)} {doc.get(number_field)} is already used{scope}.",
            frappe.UniqueValidationError,
        )


def get_scope(doctype, name):
    """Resolve the full chain of ancestors for a hierarchy record.

    Returns a dict with church, unit, bavanakutayima, house and member keys
    (missing levels are None).
    """
    scope = dict.fromkeys(("church", "unit", "bavanakutayima", "house", "member"))
    if not name:
        return scope

    if doctype == "Member":
        row = frappe.db.get_value(
            "Member", name, ["house", "bavanakutayima", "unit", "church"], as_dict=True
        )
        if row:
            scope.update(row)
            scope["member"] = name
    elif doctype == "House":
        row = frappe.db.get_value(
            "House", name, ["bavanakutayima", "unit", "church"], as_dict=True
        )
        if row:
            scope.update(row)
            scope["house"] = name
    elif doctype == "Bavanakutayima":
        row = frappe.db.get_value("Bavanakutayima", name, ["unit", "church"], as_dict=True)
        if row:
            scope.update(row)
            scope["bavanakutayima"] = name
    elif doctype == "Unit":
        scope["church"] = frappe.db.get_value("Unit", name, "church")
        scope["unit"] = name
    elif doctype == "Church":
        scope["church"] = name

    return scope


def get_hierarchical_number(doctype, name):
    """Display identifier encoding a House or Member's position in the tree.

    House:  church-unit-bavanakutayima-house
    Member: church-unit-bavanakutayima-house-member
    Returns None when any ancestor is missing.
    """
    if doctype not in ("House", "Member"):
        return None

    scope = get_scope(doctype, name)
    if not all(scope[level] for level in ("church", "unit", "bavanakutayima", "house")):
        return None

    parts = [
        frappe.db.get_value("Church", scope["church"], "church_number"),
        frappe.db.get_value("Unit", scope["unit"], "unit_number"),
        frappe.db.get_value("Bavanakutayima", scope["bavanakutayima"], "bavanakutayima_number"),
        frappe.db.get_value("House", scope["house"], "house_number"),
    ]
    if doctype == "Member":
        parts.append(frappe.db.get_value("Member", name, "member_number"))

    if any(p is None for p in parts):
        return None
    return "-".join(str(cint(p)) for p in parts)


def refresh_member_numbers(doc, method=None):
    """Re-derive hierarchical numbers for a house's members after the house changes."""
    members = frappe.get_all("Member", filters={"house": doc.name}, pluck="name")
    for member in members:
        frappe.db.set_value(
            "Member",
            member,
            {"bavanakutayima": doc.bavanakutayima, "unit": doc.unit, "church": doc.church},
            update_modified=False,
        )
        frappe.db.set_value(
            "Member",
            member,
            "hierarchical_number",
            get_hierarchical_number("Member", member),
            update_modified=False,
        )


def refresh_descendants(doc, method=None):
    """Re-copy ancestor links and hierarchical numbers below a Church, Unit or Bavanakutayima.

    Runs after the level is moved or renumbered so that Houses and Members never
    keep a stale unit, church or hierarchical number.
    """
    if doc.doctype == "Church":
        for unit in frappe.get_all("Unit", filters={"church": doc.name}, pluck="name"):
            refresh_descendants(frappe._dict(doctype="Unit", name=unit, church=doc.name))
        return

    if doc.doctype == "Unit":
        bavanakutayimas = frappe.get_all("Bavanakutayima", filters={"unit": doc.name}, pluck="name")
        for bk in bavanakutayimas:
            frappe.db.set_value("Bavanakutayima", bk, "church", doc.church, update_modified=False)
        parents = {bk: (doc.name, doc.church) for bk in bavanakutayimas}
    else:
        parents = {doc.name: (doc.unit, doc.church)}

    if not parents:
        return

    houses = frappe.get_all(
        "House",
        filters={"bavanakutayima": ["in", list(parents)]},
        fields=["name", "bavanakutayima"],
    )
    for house in houses:
        house.unit, house.church = parents[house.bavanakutayima]
        frappe.db.set_value(
            "House", house.name, {"unit": house.unit, "church": house.church}, update_modified=False
        )
        frappe.db.set_value(
            "House",
            house.name,
            "hierarchical_number",
            get_hierarchical_number("House", house.name),
            update_modified=False,
        )
        refresh_member_numbers(house)
