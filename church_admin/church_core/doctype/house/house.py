import frappe
from frappe.model.document import Document

from church_admin.hierarchy import (
    get_hierarchical_number,
    refresh_member_numbers,
    set_sequence_number,
)


class House(Document):
    def validate(self):
        self.set_hierarchy()
        set_sequence_number(self)

    def set_hierarchy(self):
        """Copy unit and church down from the bavanakutayima."""
        parent = frappe.db.get_value(
            "Bavanakutayima", self.bavanakutayima, ["unit", "church"], as_dict=True
        )
        if parent:
            self.unit = parent.unit
            self.church = parent.church

    def on_update(self):
        self.db_set(
            "hierarchical_number",
            get_hierarchical_number("House", self.name),
            update_modified=False,
        )
        refresh_member_numbers(self)
