import frappe
from frappe.utils import add_days, nowdate

from church_admin.dues import EVENT_DOCTYPES, find_total_divergence, process_dues
from church_admin.utils import format_currency_short


def process_all_dues(as_of=None):
    """Daily sweep: generate dues for every Campaign and Stothrakazhcha past its due date."""
    totals = {"members_processed": 0, "houses_processed": 0}

    for event_type in EVENT_DOCTYPES:
        result = process_dues(event_type, as_of=as_of)
        totals["members_processed"] += result["total_members_processed"]
        totals["houses_processed"] += result["total_houses_processed"]

        frappe.logger("church_admin").info(
            f"Dues sweep [{event_type}]: {result['events_processed']} events, "
            f"{result['total_members_processed']} member dues, "
            f"{result['total_houses_processed']} house dues, "
            f"{len(result['failed'])} failed"
        )

    frappe.db.commit()
    return totals


def audit_event_totals():
    """Check every event's stored totals against its contributor log and log divergences."""
    diverged = []
    for doctype in EVENT_DOCTYPES.values():
        for name in frappe.get_all(doctype, pluck="name"):
            message = find_total_divergence(frappe.get_doc(doctype, name))
            if message:
                frappe.log_error(title=f"Ledger totals diverge for {doctype} {name}", message=message)
                diverged.append(name)

    if diverged:
        frappe.logger("church_admin").warning(
            f"Ledger audit: {len(diverged)} events diverge from their contributor log"
        )
    frappe.db.commit()
    return diverged


def weekly_contribution_summary():
    """Log last week's collections per church."""
    since = add_days(nowdate(), -7)

    rows = frappe.db.sql("""
        SELECT
            church,
            transaction_type,
            COALESCE(SUM(amount), 0) as total,
            COUNT(name) as transactions
        FROM `tabChurch Transaction`
        WHERE payment_date >= %s
        GROUP BY church, transaction_type
        ORDER BY church, transaction_type
    """, since, as_dict=True)

    for row in rows:
        frappe.logger("church_admin").info(
            f"Weekly summary [{row.church}] {row.transaction_type}: "
            f"{format_currency_short(row.total)} from {row.transactions} transactions"
        )

    return rows
