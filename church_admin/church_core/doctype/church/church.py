import frappe
from frappe.model.document import Document

from church_admin.hierarchy import refresh_descendants, set_sequence_number


class Church(Document):
    def validate(self):
        set_sequence_number(self)

    def on_update(self):
        if self.has_value_changed("church_number"):
            refresh_descendants(self)
