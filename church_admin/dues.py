"""Contribution and dues ledger.

Three operations mutate the ledger:

- ``contribute`` appends to an event's contributor log and refreshes its totals.
- ``process_dues`` sweeps events past their due date and creates a due record for
  every payer whose cumulative contribution is short of the assessed amount.
- ``pay_due`` applies a payment to one due record and mirrors it in the event log.

Each one locks the row it mutates (``SELECT ... FOR UPDATE``) for the whole
read-modify-write, so concurrent requests against the same event or due are
serialised by the database.
"""

import enum
import random
import time
from dataclasses import dataclass

import frappe
from frappe.utils import cint, flt, getdate, now_datetime, nowdate

from church_admin.church_core.doctype.church_settings.church_settings import get_settings
from church_admin.exceptions import (
    ContributionPolicyError,
    DuesValidationError,
    EventStateError,
    LedgerIntegrityError,
)
from church_admin.hierarchy import get_scope

EVENT_DOCTYPES = {
    "campaign": "Campaign",
    "stothrakazhcha": "Stothrakazhcha",
}

DUE_DOCTYPES = {
    "campaign": "Campaign Due",
    "stothrakazhcha": "Stothrakazhcha Due",
}

TRANSACTION_TYPES = {
    "campaign": "Campaign Contribution",
    "stothrakazhcha": "Stothrakazhcha",
}

# Totals are currency; anything below half a paisa is rounding noise.
PRECISION = 2


class PayerType(enum.Enum):
    MEMBER = "Member"
    HOUSE = "House"


@dataclass(frozen=True)
class Payer:
    """A Member or a House that contributes to events and owes dues."""

    type: PayerType
    name: str

    @classmethod
    def from_values(cls, payer_type, name):
        if not name:
            frappe.throw("A member or house reference is required.", DuesValidationError)
        try:
            kind = payer_type if isinstance(payer_type, PayerType) else PayerType(payer_type)
        except ValueError:
            frappe.throw(
                f"Payer type must be Member or House, not '{payer_type}'.",
                DuesValidationError,
            )
        return cls(kind, name)

    @property
    def doctype(self):
        return self.type.value

    @property
    def key(self):
        return (self.type.value, self.name)

    def exists(self):
        return bool(frappe.db.exists(self.doctype, self.name))

    def display_name(self):
        if self.type is PayerType.MEMBER:
            return frappe.db.get_value("Member", self.name, "full_name")
        return frappe.db.get_value("House", self.name, "family_name")

    def scope(self):
        return get_scope(self.doctype, self.name)


def get_event_doctype(event_type):
    doctype = EVENT_DOCTYPES.get((event_type or "").lower())
    if not doctype:
        frappe.throw(
            f"Unknown event type '{event_type}'. Use campaign or stothrakazhcha.",
            DuesValidationError,
        )
    return doctype


def get_due_doctype(due_type):
    doctype = DUE_DOCTYPES.get((due_type or "").lower())
    if not doctype:
        frappe.throw(
            f"Unknown due type '{due_type}'. Use campaign or stothrakazhcha.",
            DuesValidationError,
        )
    return doctype


def get_event_type(doctype):
    """Reverse of EVENT_DOCTYPES: Campaign -> campaign."""
    for event_type, event_doctype in EVENT_DOCTYPES.items():
        if event_doctype == doctype:
            return event_type
    frappe.throw(f"{doctype} is not a contribution event.", DuesValidationError)


# --------------------------------------------------------------------------
# Event policy and aggregates
# --------------------------------------------------------------------------

def validate_event_policy(event):
    """Shared Campaign/Stothrakazhcha checks run from the controllers' validate."""
    if event.contribution_mode == "Fixed" and flt(event.fixed_amount) <= 0:
        frappe.throw("Fixed Amount is required when Contribution Mode is Fixed.", ContributionPolicyError)
    if flt(event.minimum_amount) < 0:
        frappe.throw("Minimum Amount cannot be negative.", ContributionPolicyError)

    before = event.get_doc_before_save()
    if before and cint(before.dues_processed) and not cint(event.dues_processed):
        frappe.throw(
            f"Dues for {event.doctype} {event.name} were already processed and cannot be reopened.",
            EventStateError,
        )

    recompute_event_totals(event)


def validate_contribution_amount(event, amount):
    """Check an amount against the event's Fixed or Variable contribution policy."""
    amount = flt(amount, PRECISION)
    if amount <= 0:
        frappe.throw("Contribution amount must be greater than zero.", DuesValidationError)

    if event.contribution_mode == "Fixed":
        fixed = flt(event.fixed_amount, PRECISION)
        if amount != fixed:
            frappe.throw(
                f"{event.doctype} {event.name} only accepts contributions of exactly {fixed}.",
                ContributionPolicyError,
            )
    elif amount < flt(event.minimum_amount, PRECISION):
        frappe.throw(
            f"Minimum contribution for {event.doctype} {event.name} is "
            f"{flt(event.minimum_amount, PRECISION)}.",
            ContributionPolicyError,
        )

    return amount


def recompute_event_totals(event):
    """total_collected is the sum of the log; total_contributors counts distinct payers."""
    event.total_collected = flt(sum(flt(row.amount) for row in event.contributors), PRECISION)
    event.total_contributors = len(
        {(row.contributor_type, row.contributor) for row in event.contributors}
    )


def cumulative_contributions(event):
    """Sum of contributions per payer key, e.g. {("Member", "MEM-00001"): 300.0}."""
    totals = {}
    for row in event.contributors:
        key = (row.contributor_type, row.contributor)
        totals[key] = flt(totals.get(key, 0) + flt(row.amount), PRECISION)
    return totals


def assessed_amount(event, settings=None):
    """Amount each payer is expected to have given once the due date passes."""
    if event.contribution_mode == "Fixed":
        return flt(event.fixed_amount, PRECISION)

    settings = settings or get_settings()
    minimum = flt(event.minimum_amount, PRECISION)

    if (
        event.doctype == "Stothrakazhcha"
        and cint(settings.assess_stothrakazhcha_by_average)
        and cint(event.total_contributors)
    ):
        average = flt(flt(event.total_collected) / cint(event.total_contributors), PRECISION)
        return max(average, minimum)

    if minimum > 0:
        return minimum

    if event.doctype == "Stothrakazhcha" and flt(event.default_amount) > 0:
        return flt(event.default_amount, PRECISION)

    return flt(settings.default_due_amount, PRECISION)


def get_target_population(event):
    """Payers the event is assessed against, as (Payer, row) pairs.

    Per House assesses every House of the church. Per Member and Flexible assess
    every active Member.
    """
    if event.amount_type == "Per House":
        houses = frappe.get_all(
            "House",
            filters={"church": event.church},
            fields=["name", "family_name as payer_name", "bavanakutayima", "unit", "name as house"],
            order_by="house_number asc, name asc",
        )
        return [(Payer(PayerType.HOUSE, row.name), row) for row in houses]

    members = frappe.get_all(
        "Member",
        filters={"church": event.church, "is_active": 1},
        fields=["name", "full_name as payer_name", "bavanakutayima", "unit", "house"],
        order_by="house asc, member_number asc",
    )
    return [(Payer(PayerType.MEMBER, row.name), row) for row in members]


def credited_payer(event, payer):
    """The payer a contribution is logged against, following the event's amount type.

    A member giving to a Per House event is credited to their house. Per Member
    and Flexible events assess members, so a house cannot contribute to them.
    """
    if event.amount_type == "Per House":
        if payer.type is PayerType.HOUSE:
            return payer
        house = frappe.db.get_value("Member", payer.name, "house")
        if not house:
            frappe.throw(
                f"Member {payer.name} has no house to credit for {event.doctype} {event.name}.",
                DuesValidationError,
            )
        return Payer(PayerType.HOUSE, house)

    if payer.type is PayerType.HOUSE:
        frappe.throw(
            f"{event.doctype} {event.name} is assessed per member. Contribute as a member of {payer.name}.",
            DuesValidationError,
        )
    return payer


def get_event_summary(event):
    return {
        "name": event.name,
        "event_type": get_event_type(event.doctype),
        "church": event.church,
        "status": event.status,
        "contribution_mode": event.contribution_mode,
        "amount_type": event.amount_type,
        "total_collected": flt(event.total_collected),
        "total_contributors": cint(event.total_contributors),
        "contributions": len(event.contributors),
        "dues_processed": cint(event.dues_processed),
        "dues_processed_at": event.dues_processed_at,
    }


def find_total_divergence(event):
    """Describe how stored totals differ from the contributor log, or None when they agree."""
    stored_total = flt(event.total_collected, PRECISION)
    stored_count = cint(event.total_contributors)
    log_total = flt(sum(flt(row.amount) for row in event.contributors), PRECISION)
    log_count = len({(row.contributor_type, row.contributor) for row in event.contributors})

    if stored_total == log_total and stored_count == log_count:
        return None
    return (
        f"{event.doctype} {event.name}: stored total {stored_total} from {stored_count} payers, "
        f"log says {log_total} from {log_count} payers."
    )


def verify_event_totals(event_type, name):
    """Raise LedgerIntegrityError when stored totals disagree with the contributor log."""
    event = frappe.get_doc(get_event_doctype(event_type), name)
    message = find_total_divergence(event)
    if message:
        frappe.log_error(title=f"Ledger totals diverge for {event.doctype} {name}", message=message)
        frappe.throw(message, LedgerIntegrityError)
    return get_event_summary(event)


# --------------------------------------------------------------------------
# Transactions
# --------------------------------------------------------------------------

def make_receipt_number(prefix=None):
    prefix = prefix or get_settings().receipt_prefix or "RCP"
    return f"{prefix}-{int(time.time() * 1000)}-{random.randint(0, 999):03d}"


def create_transaction(transaction_type, amount, church, scope=None, payment_method="Cash", **refs):
    """Insert the Church Transaction audit row for a ledger mutation."""
    scope = scope or {}
    txn = frappe.get_doc({
        "doctype": "Church Transaction",
        "transaction_type": transaction_type,
        "amount": flt(amount, PRECISION),
        "payment_method": payment_method or "Cash",
        "payment_date": now_datetime(),
        "church": church,
        "unit": scope.get("unit"),
        "bavanakutayima": scope.get("bavanakutayima"),
        "house": scope.get("house"),
        "member": scope.get("member"),
        **refs,
    })
    txn.insert(ignore_permissions=True)
    return txn


def _append_contribution(event, payer, amount, txn, source="Contribution"):
    event.append("contributors", {
        "contributor_type": payer.doctype,
        "contributor": payer.name,
        "contributor_name": payer.display_name(),
        "amount": amount,
        "contributed_at": now_datetime(),
        "source": source,
        "church_transaction": txn.name,
    })
    recompute_event_totals(event)


# --------------------------------------------------------------------------
# Contribution recording
# --------------------------------------------------------------------------

def contribute(event_type, event_name, payer, amount, payment_method="Cash"):
    """Record one contribution against a Campaign or Stothrakazhcha week.

    Returns the refreshed event summary. Due records are not touched: a payer who
    contributes after the sweep still owes whatever due was generated.

    The log entry goes to ``credited_payer``. The Church Transaction keeps the
    member who actually paid.
    """
    doctype = get_event_doctype(event_type)
    event = frappe.get_doc(doctype, event_name, for_update=True)

    if event.status != "Active":
        frappe.throw(
            f"{doctype} {event.name} is {event.status} and no longer accepts contributions.",
            EventStateError,
        )

    amount = validate_contribution_amount(event, amount)

    if not payer.exists():
        frappe.throw(f"{payer.doctype} {payer.name} not found.", frappe.DoesNotExistError)

    scope = payer.scope()
    if scope["church"] != event.church:
        frappe.throw(
            f"{payer.doctype} {payer.name} does not belong to church {event.church}.",
            DuesValidationError,
        )
    credited = credited_payer(event, payer)

    txn = create_transaction(
        TRANSACTION_TYPES[event_type.lower()],
        amount,
        event.church,
        scope=scope,
        payment_method=payment_method,
        **{event_type.lower(): event.name},
    )
    _append_contribution(event, credited, amount, txn)
    event.save(ignore_permissions=True)

    frappe.logger("church_admin").info(
        f"Contribution {txn.name}: {credited.doctype} {credited.name} gave {amount} to {doctype} {event.name}"
    )
    return get_event_summary(event)


# --------------------------------------------------------------------------
# Due processing
# --------------------------------------------------------------------------

def process_event_dues(event_type, name, as_of=None, settings=None):
    """Generate due records for one event. Safe to call again: a processed event reports zero."""
    doctype = get_event_doctype(event_type)
    event_type = event_type.lower()
    event = frappe.get_doc(doctype, name, for_update=True)

    result = {"event": name, "members_processed": 0, "houses_processed": 0, "already_processed": False}
    # Re-read under the lock; another sweep may have finished first.
    if cint(event.dues_processed):
        result["already_processed"] = True
        return result

    assessed = assessed_amount(event, settings)
    contributed = cumulative_contributions(event)
    due_date = event.due_date or getdate(as_of or nowdate())

    for payer, row in get_target_population(event):
        already = contributed.get(payer.key, 0)
        if assessed <= 0 or already >= assessed:
            continue
        _create_due(event_type, event, payer, row, assessed, already, due_date)
        if payer.type is PayerType.MEMBER:
            result["members_processed"] += 1
        else:
            result["houses_processed"] += 1

    event.dues_processed = 1
    event.dues_processed_at = now_datetime()
    if doctype == "Stothrakazhcha":
        event.status = "Processed"
    event.save(ignore_permissions=True)

    frappe.logger("church_admin").info(
        f"Dues processed for {doctype} {name}: assessed {assessed}, "
        f"{result['members_processed']} member dues, {result['houses_processed']} house dues"
    )
    return result


def _create_due(event_type, event, payer, row, assessed, already, due_date):
    due = frappe.get_doc({
        "doctype": DUE_DOCTYPES[event_type],
        event_type: event.name,
        "church": event.church,
        "due_date": due_date,
        "due_for_type": payer.doctype,
        "due_for": payer.name,
        "due_for_name": row.payer_name or payer.name,
        "unit": row.unit,
        "bavanakutayima": row.bavanakutayima,
        "house": row.house,
        "amount": assessed,
        "paid_amount": already,
        "balance": flt(assessed - already, PRECISION),
    })
    due.insert(ignore_permissions=True)
    return due


def process_dues(event_type, as_of=None, event=None):
    """Sweep every Active, unprocessed event of one kind whose due date has passed.

    Each event runs in its own savepoint. When one fails it is rolled back and
    logged and the sweep carries on. A single named event is processed
    regardless of its due date and its failure propagates.
    """
    doctype = get_event_doctype(event_type)
    event_type = event_type.lower()
    as_of = getdate(as_of or nowdate())
    settings = get_settings()

    if event:
        names = [event]
    else:
        names = frappe.get_all(
            doctype,
            filters={"due_date": ["<=", as_of], "dues_processed": 0, "status": "Active"},
            order_by="due_date asc, name asc",
            pluck="name",
        )

    summary = {
        "events_processed": 0,
        "total_members_processed": 0,
        "total_houses_processed": 0,
        "processed": [],
        "failed": [],
    }

    for name in names:
        save_point = f"dues_{frappe.generate_hash(length=10)}"
        frappe.db.savepoint(save_point)
        try:
            outcome = process_event_dues(event_type, name, as_of=as_of, settings=settings)
        except Exception:
            frappe.db.rollback(save_point=save_point)
            if event:
                raise
            frappe.log_error(
                title=f"Due processing failed for {doctype} {name}",
                message=frappe.get_traceback(),
            )
            summary["failed"].append(name)
            continue

        if outcome["already_processed"]:
            continue
        summary["events_processed"] += 1
        summary["total_members_processed"] += outcome["members_processed"]
        summary["total_houses_processed"] += outcome["houses_processed"]
        summary["processed"].append(outcome)

    return summary


# --------------------------------------------------------------------------
# Due payment
# --------------------------------------------------------------------------

def sync_due_balance(due):
    """Derive balance, is_paid and paid_at from amount and paid_amount."""
    due.balance = flt(flt(due.amount) - flt(due.paid_amount), PRECISION)
    due.is_paid = 1 if due.balance <= 0 else 0
    if due.is_paid and not due.paid_at:
        due.paid_at = now_datetime()
    elif not due.is_paid:
        due.paid_at = None


def validate_due(due):
    """Controller validation shared by Campaign Due and Stothrakazhcha Due."""
    Payer.from_values(due.due_for_type, due.due_for)
    if flt(due.amount) < 0:
        frappe.throw("Due amount cannot be negative.", DuesValidationError)
    if flt(due.paid_amount) < 0:
        frappe.throw("Paid amount cannot be negative.", DuesValidationError)
    if flt(due.paid_amount, PRECISION) > flt(due.amount, PRECISION):
        frappe.throw(
            f"Paid amount {flt(due.paid_amount)} cannot exceed the due amount {flt(due.amount)}.",
            DuesValidationError,
        )
    sync_due_balance(due)


def pay_due(due_type, due_name, amount, payment_method="Cash"):
    """Apply a payment to one due record and return the updated due.

    Over-payment is rejected, never clamped. The payment is also appended to the
    originating event's contributor log so its totals stay equal to the log.
    """
    doctype = get_due_doctype(due_type)
    due_type = due_type.lower()
    due = frappe.get_doc(doctype, due_name, for_update=True)

    amount = flt(amount, PRECISION)
    if amount <= 0:
        frappe.throw("Payment amount must be greater than zero.", DuesValidationError)
    if cint(due.is_paid) or flt(due.balance, PRECISION) <= 0:
        frappe.throw(f"{doctype} {due.name} is already paid.", EventStateError)
    if amount > flt(due.balance, PRECISION):
        frappe.throw(
            f"Payment of {amount} exceeds the outstanding balance of "
            f"{flt(due.balance, PRECISION)} on {due.name}.",
            DuesValidationError,
        )

    payer = Payer.from_values(due.due_for_type, due.due_for)
    if not payer.exists():
        message = f"{doctype} {due.name} is owed by {payer.doctype} {payer.name}, which no longer exists."
        frappe.log_error(title=f"Orphaned due {due.name}", message=message)
        frappe.throw(message, LedgerIntegrityError)

    event = frappe.get_doc(EVENT_DOCTYPES[due_type], due.get(due_type), for_update=True)
    txn = create_transaction(
        "Due Payment",
        amount,
        due.church,
        scope=payer.scope(),
        payment_method=payment_method,
        reference_doctype=doctype,
        reference_name=due.name,
        **{due_type: event.name},
    )
    _append_contribution(event, payer, amount, txn, source="Due Payment")
    event.save(ignore_permissions=True)

    due.paid_amount = flt(flt(due.paid_amount) + amount, PRECISION)
    due.last_transaction = txn.name
    sync_due_balance(due)
    due.save(ignore_permissions=True)

    frappe.logger("church_admin").info(
        f"Due payment {txn.name}: {amount} against {due.name}, balance now {due.balance}"
    )
    return due
