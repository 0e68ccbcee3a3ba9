import frappe
from frappe.model.document import Document

from church_admin.dues import validate_due


class CampaignDue(Document):
    def validate(self):
        validate_due(self)


def on_doctype_update():
    frappe.db.add_unique("Campaign Due", ["campaign", "due_for"], constraint_name="unique_campaign_due_for")
