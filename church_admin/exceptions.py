import frappe


class DuesValidationError(frappe.ValidationError):
    """Bad input for a contribution or payment. The user must resubmit."""

    http_status_code = 400


class ContributionPolicyError(DuesValidationError):
    """Amount does not match the event's fixed amount or minimum."""


class EventStateError(frappe.ValidationError):
    """Operation not allowed in the current state of the event or due."""

    http_status_code = 409


class LedgerIntegrityError(frappe.ValidationError):
    """Stored ledger state contradicts itself. Always logged, never absorbed."""

    http_status_code = 500
