import frappe
from frappe.utils import cint, flt, nowdate

from church_admin import dues
from church_admin.church_core.doctype.stothrakazhcha.stothrakazhcha import get_current_week
from church_admin.permissions import (
    get_user_member,
    has_scoped_permission,
    is_church_admin,
    is_unscoped,
)

DUE_FIELDS = [
    "name", "church", "due_date", "due_for_type", "due_for", "due_for_name",
    "unit", "bavanakutayima", "house", "amount", "paid_amount", "balance",
    "is_paid", "paid_at",
]


def _require_admin():
    if not is_church_admin():
        frappe.throw("Only church administrators can do this.", frappe.PermissionError)


def _check_scope(doc):
    if not has_scoped_permission(doc, "write", frappe.session.user):
        frappe.throw(
            f"{doc.doctype} {doc.name} is outside your part of the church.",
            frappe.PermissionError,
        )


def _resolve_contributor(member=None, house=None):
    """Pick the payer for a contribution.

    Admins may contribute on behalf of any Member or House in their scope.
    Everyone else contributes as their own Member record.
    """
    if is_church_admin():
        if house and not member:
            payer = dues.Payer.from_values(dues.PayerType.HOUSE, house)
        else:
            payer = dues.Payer.from_values(dues.PayerType.MEMBER, member)
        if payer.exists():
            _check_scope(frappe.get_doc(payer.doctype, payer.name))
        return payer

    own = get_user_member()
    if not own:
        frappe.throw("Your user is not linked to a Member record.", frappe.PermissionError)
    if house or (member and member != own.name):
        frappe.throw("Members can only contribute as themselves.", frappe.PermissionError)
    return dues.Payer(dues.PayerType.MEMBER, own.name)


@frappe.whitelist(allow_guest=False)
def contribute_to_campaign(campaign, amount, member=None, house=None, payment_method="Cash"):
    """Record a contribution against a campaign.

    POST /api/method/church_admin.api.contribute_to_campaign
    Body (JSON): {"campaign": "CAMP-2025-0001", "amount": 500, "member": "MEM-00012"}
    """
    payer = _resolve_contributor(member, house)
    return dues.contribute("campaign", campaign, payer, amount, payment_method)


@frappe.whitelist(allow_guest=False)
def contribute_to_stothrakazhcha(stothrakazhcha, amount, member=None, house=None, payment_method="Cash"):
    """Record a weekly Stothrakazhcha offering. Defaults to the caller's own Member record.
    In a Per House week the offering is credited to the member's house.

    POST /api/method/church_admin.api.contribute_to_stothrakazhcha
    Body (JSON): {"stothrakazhcha": "STK-CH-0001-2025-W12", "amount": 100}
    """
    payer = _resolve_contributor(member, house)
    return dues.contribute("stothrakazhcha", stothrakazhcha, payer, amount, payment_method)


def _process(event_type, event=None):
    _require_admin()
    if event:
        _check_scope(frappe.get_doc(dues.get_event_doctype(event_type), event))
    elif not is_unscoped():
        frappe.throw(
            "Only super admins can sweep every church. Name the event to process.",
            frappe.PermissionError,
        )
    return dues.process_dues(event_type, event=event)


@frappe.whitelist(allow_guest=False)
def process_campaign_dues(campaign=None):
    """Generate dues for campaigns past their due date, or for one named campaign.

    POST /api/method/church_admin.api.process_campaign_dues
    """
    return _process("campaign", campaign)


@frappe.whitelist(allow_guest=False)
def process_stothrakazhcha_dues(stothrakazhcha=None):
    """Generate dues for Stothrakazhcha weeks past their due date, or for one named week.

    POST /api/method/church_admin.api.process_stothrakazhcha_dues
    """
    return _process("stothrakazhcha", stothrakazhcha)


@frappe.whitelist(allow_guest=False)
def pay_due(due, due_type, amount, payment_method="Cash"):
    """Apply a payment to a campaign or Stothrakazhcha due.

    POST /api/method/church_admin.api.pay_due
    Body (JSON): {"due": "CDUE-00004", "due_type": "campaign", "amount": 250, "payment_method": "UPI"}
    """
    _require_admin()
    _check_scope(frappe.get_doc(dues.get_due_doctype(due_type), due))

    doc = dues.pay_due(due_type, due, amount, payment_method)
    return {
        "due": doc.name,
        "due_type": due_type.lower(),
        "amount": flt(doc.amount),
        "paid_amount": flt(doc.paid_amount),
        "balance": flt(doc.balance),
        "is_paid": cint(doc.is_paid),
        "paid_at": doc.paid_at,
        "last_transaction": doc.last_transaction,
    }


def _event_label(due_type, row):
    if due_type == "campaign":
        return row.campaign_name
    return f"Stothrakazhcha Week {row.week_number}, {row.year}"


def _stored_hierarchical_numbers(rows):
    """Stored hierarchical numbers keyed by (payer type, payer), one query per payer type."""
    numbers = {}
    for doctype in ("Member", "House"):
        names = {r["due_for"] for r in rows if r["type"] == doctype.lower()}
        if not names:
            continue
        for payer in frappe.get_all(
            doctype, filters={"name": ["in", list(names)]}, fields=["name", "hierarchical_number"]
        ):
            numbers[(doctype.lower(), payer.name)] = payer.hierarchical_number
    return numbers


@frappe.whitelist(allow_guest=False)
def get_dues(unit=None, bavanakutayima=None, house=None, member=None):
    """Unpaid dues of both kinds, narrowed by the most specific filter given.

    GET /api/method/church_admin.api.get_dues?house=HOUSE-00003
    """
    filters = {"is_paid": 0}
    if member:
        filters.update({"due_for_type": "Member", "due_for": member})
    elif house:
        filters["house"] = house
    elif bavanakutayima:
        filters["bavanakutayima"] = bavanakutayima
    elif unit:
        filters["unit"] = unit

    extra_fields = {
        "campaign": ["campaign as event", "campaign_name"],
        "stothrakazhcha": ["stothrakazhcha as event", "week_number", "year"],
    }

    result = []
    for due_type, doctype in dues.DUE_DOCTYPES.items():
        rows = frappe.get_list(
            doctype,
            filters=filters,
            fields=DUE_FIELDS + extra_fields[due_type],
            order_by="due_date asc, creation desc",
            limit_page_length=0,
        )
        for row in rows:
            result.append({
                "due": row.name,
                "due_type": due_type,
                "event": row.event,
                "name": row.due_for_name,
                "type": row.due_for_type.lower(),
                "due_for": row.due_for,
                "campaign_name": _event_label(due_type, row),
                "due_date": row.due_date,
                "due_amount": flt(row.amount),
                "paid_amount": flt(row.paid_amount),
                "remaining_amount": flt(row.balance),
                "hierarchical_number": None,
            })

    numbers = _stored_hierarchical_numbers(result)
    for due in result:
        due["hierarchical_number"] = numbers.get((due["type"], due["due_for"]))
    return result


@frappe.whitelist(allow_guest=False)
def get_dues_for_payer(payer_type, payer):
    """All dues of one Member or House, paid and unpaid, with a summary.

    GET /api/method/church_admin.api.get_dues_for_payer?payer_type=House&payer=HOUSE-00003
    """
    payer = dues.Payer.from_values(payer_type, payer)
    filters = {"due_for_type": payer.doctype, "due_for": payer.name}

    all_dues = []
    for due_type, doctype in dues.DUE_DOCTYPES.items():
        for row in frappe.get_list(doctype, filters=filters, fields=DUE_FIELDS, order_by="due_date desc"):
            row["due_type"] = due_type
            all_dues.append(row)

    unpaid = [d for d in all_dues if not cint(d.is_paid)]
    return {
        "dues": all_dues,
        "summary": {
            "total_dues": len(all_dues),
            "unpaid_dues": len(unpaid),
            "paid_dues": len(all_dues) - len(unpaid),
            "total_due_amount": flt(sum(flt(d.balance) for d in unpaid)),
            "total_paid_amount": flt(sum(flt(d.paid_amount) for d in all_dues)),
        },
    }


@frappe.whitelist(allow_guest=False)
def get_event_summary(event_type, event):
    """Totals and status of a campaign or Stothrakazhcha week.

    GET /api/method/church_admin.api.get_event_summary?event_type=campaign&event=CAMP-2025-0001
    """
    doc = frappe.get_doc(dues.get_event_doctype(event_type), event)
    doc.check_permission("read")
    return dues.get_event_summary(doc)


def _default_church(church=None):
    if church:
        return church
    member = get_user_member()
    return member.church if member else None


@frappe.whitelist(allow_guest=False)
def get_current_week_stothrakazhcha(church=None):
    """The Stothrakazhcha covering today for a church (the caller's church by default).

    GET /api/method/church_admin.api.get_current_week_stothrakazhcha
    """
    church = _default_church(church)
    if not church:
        frappe.throw("Church is required.")

    name = get_current_week(church)
    if not name:
        return None
    doc = frappe.get_doc("Stothrakazhcha", name)
    doc.check_permission("read")
    summary = dues.get_event_summary(doc)
    summary.update({
        "week_number": doc.week_number,
        "year": doc.year,
        "week_start_date": doc.week_start_date,
        "week_end_date": doc.week_end_date,
        "due_date": doc.due_date,
        "contribution_mode": doc.contribution_mode,
        "fixed_amount": flt(doc.fixed_amount),
        "minimum_amount": flt(doc.minimum_amount),
    })
    return summary


def _active_publications(doctype, church, extra_fields):
    today = nowdate()
    filters = {"is_active": 1, "start_date": ["<=", today]}
    church = _default_church(church)
    if church:
        filters["church"] = church

    return frappe.get_list(
        doctype,
        filters=filters,
        or_filters=[["end_date", "is", "not set"], ["end_date", ">=", today]],
        fields=["name", "title", "church", "content_type", "content", "media_url",
                "start_date", "end_date"] + extra_fields,
        order_by="start_date desc",
    )


@frappe.whitelist(allow_guest=False)
def get_active_news(church=None):
    """GET /api/method/church_admin.api.get_active_news"""
    return _active_publications("News", church, [])


@frappe.whitelist(allow_guest=False)
def get_active_events(church=None):
    """GET /api/method/church_admin.api.get_active_events"""
    return _active_publications("Church Event", church, ["location"])
