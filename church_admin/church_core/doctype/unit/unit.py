import frappe
from frappe.model.document import Document

from church_admin.hierarchy import refresh_descendants, set_sequence_number


class Unit(Document):
    def validate(self):
        set_sequence_number(self)

    def on_update(self):
        if self.has_value_changed("church") or self.has_value_changed("unit_number"):
            refresh_descendants(self)

    def on_trash(self):
        if frappe.db.exists("Bavanakutayima", {"unit": self.name}):
            frappe.throw(
                f"Unit {self.unit_name} still has bavanakutayimas. Move or delete them first.",
                frappe.LinkExistsError,
            )
