import frappe
from frappe.model.document import Document

from church_admin.hierarchy import refresh_descendants, set_sequence_number


class Bavanakutayima(Document):
    def validate(self):
        self.church = frappe.db.get_value("Unit", self.unit, "church")
        set_sequence_number(self)

    def on_update(self):
        # Moving to another unit can change the church too
        if self.has_value_changed("unit") or self.has_value_changed("bavanakutayima_number"):
            refresh_descendants(self)
