import frappe
from frappe.model.document import Document

from church_admin.dues import validate_due


class StothrakazhchaDue(Document):
    def validate(self):
        validate_due(self)


def on_doctype_update():
    frappe.db.add_unique(
        "Stothrakazhcha Due", ["stothrakazhcha", "due_for"], constraint_name="unique_stothrakazhcha_due_for"
    )
