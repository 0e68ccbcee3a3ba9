import frappe


def make_church_tree(label, houses=(("A", 2), ("B", 1))):
    """Create a fresh Church -> Unit -> Bavanakutayima -> Houses -> Members tree.

    ``houses`` is a sequence of (family suffix, member count). Returns a frappe._dict
    with church, unit, bavanakutayima, houses (list of names) and members (list of
    names, in creation order).
    """
    tag = f"{label} {frappe.generate_hash(length=6)}"

    church = frappe.get_doc({
        "doctype": "Church",
        "church_name": f"_Test Church {tag}",
        "location": "Kottayam",
    }).insert()
    unit = frappe.get_doc({
        "doctype": "Unit",
        "unit_name": f"_Test Unit {tag}",
        "church": church.name,
    }).insert()
    bk = frappe.get_doc({
        "doctype": "Bavanakutayima",
        "bavanakutayima_name": f"_Test BK {tag}",
        "unit": unit.name,
    }).insert()

    tree = frappe._dict(
        church=church.name, unit=unit.name, bavanakutayima=bk.name, houses=[], members=[]
    )
    for suffix, member_count in houses:
        house = frappe.get_doc({
            "doctype": "House",
            "family_name": f"_Test Family {suffix} {tag}",
            "bavanakutayima": bk.name,
        }).insert()
        tree.houses.append(house.name)
        for i in range(member_count):
            member = frappe.get_doc({
                "doctype": "Member",
                "first_name": f"_Test{suffix}{i + 1}",
                "last_name": tag,
                "house": house.name,
            }).insert()
            tree.members.append(member.name)

    return tree


def make_campaign(church, **kwargs):
    doc = frappe.get_doc({
        "doctype": "Campaign",
        "campaign_name": f"_Test Campaign {frappe.generate_hash(length=6)}",
        "church": church,
        "campaign_type": "Spl Contribution",
        "status": "Active",
        "start_date": "2097-01-01",
        "due_date": "2097-03-31",
        "amount_type": "Per Member",
        "contribution_mode": "Fixed",
        "fixed_amount": 500,
        **kwargs,
    })
    return doc.insert()


def make_stothrakazhcha(church, week_number=10, year=2097, **kwargs):
    doc = frappe.get_doc({
        "doctype": "Stothrakazhcha",
        "church": church,
        "week_number": week_number,
        "year": year,
        "week_start_date": f"{year}-03-04",
        "week_end_date": f"{year}-03-10",
        "due_date": f"{year}-03-10",
        "amount_type": "Per Member",
        "contribution_mode": "Variable",
        "minimum_amount": 50,
        **kwargs,
    })
    return doc.insert()


def make_user(role, member=None):
    """A test user holding one church role, optionally linked to a Member."""
    email = f"_test_{frappe.generate_hash(length=8)}@example.com"
    user = frappe.get_doc({
        "doctype": "User",
        "email": email,
        "first_name": "_Test",
        "send_welcome_email": 0,
        "roles": [{"role": role}],
    }).insert()
    if member:
        frappe.db.set_value("Member", member, "user", user.name)
    return user.name
