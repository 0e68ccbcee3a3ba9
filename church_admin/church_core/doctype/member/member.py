import frappe
from frappe.model.document import Document

from church_admin.hierarchy import get_hierarchical_number, set_sequence_number


class Member(Document):
    def validate(self):
        self.full_name = f"{self.first_name} {self.last_name or ''}".strip()
        self.set_hierarchy()
        set_sequence_number(self)

    def set_hierarchy(self):
        """Denormalise the ancestors of the house so scoped queries need no joins."""
        house = frappe.db.get_value(
            "House", self.house, ["bavanakutayima", "unit", "church"], as_dict=True
        )
        if house:
            self.bavanakutayima = house.bavanakutayima
            self.unit = house.unit
            self.church = house.church

    def on_update(self):
        self.db_set(
            "hierarchical_number",
            get_hierarchical_number("Member", self.name),
            update_modified=False,
        )
