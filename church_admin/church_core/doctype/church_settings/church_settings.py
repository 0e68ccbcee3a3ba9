import frappe
from frappe.model.document import Document
from frappe.utils import cint, flt


class ChurchSettings(Document):
    def validate(self):
        if flt(self.default_due_amount) < 0:
            frappe.throw("Default Due Amount cannot be negative.")
        if cint(self.access_token_expiry_minutes) <= 0:
            frappe.throw("Access Token Expiry must be at least one minute.")
        if cint(self.refresh_token_expiry_days) <= 0:
            frappe.throw("Refresh Token Expiry must be at least one day.")


def get_settings():
    return frappe.get_cached_doc("Church Settings")
