import frappe
from frappe.model.document import Document
from frappe.utils import getdate

from church_admin.dues import validate_event_policy


class Campaign(Document):
    def validate(self):
        if self.end_date and self.start_date and getdate(self.end_date) < getdate(self.start_date):
            frappe.throw("End Date cannot be before Start Date.")
        if self.due_date and self.start_date and getdate(self.due_date) < getdate(self.start_date):
            frappe.throw("Due Date cannot be before Start Date.")

        validate_event_policy(self)
