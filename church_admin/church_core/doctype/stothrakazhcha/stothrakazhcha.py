import frappe
from frappe.model.document import Document
from frappe.utils import cint, getdate

from church_admin.dues import validate_event_policy


class Stothrakazhcha(Document):
    def before_insert(self):
        self.set_week_defaults()

    def set_week_defaults(self):
        """Derive year and ISO week from the start date when left blank."""
        if not self.year and self.week_start_date:
            self.year = getdate(self.week_start_date).year
        if not self.week_number and self.week_start_date:
            self.week_number = getdate(self.week_start_date).isocalendar()[1]

    def validate(self):
        self.set_week_defaults()
        if not 1 <= cint(self.week_number) <= 53:
            frappe.throw("Week Number must be between 1 and 53.")
        if getdate(self.week_end_date) < getdate(self.week_start_date):
            frappe.throw("Week End Date cannot be before Week Start Date.")

        self.validate_unique_week()
        validate_event_policy(self)

    def validate_unique_week(self):
        duplicate = frappe.db.exists(
            "Stothrakazhcha",
            {
                "church": self.church,
                "year": self.year,
                "week_number": self.week_number,
                "name": ("!=", self.name),
            },
        )
        if duplicate:
            frappe.throw(
                f"Week {self.week_number} of {self.year} already exists for this church ({duplicate}).",
                frappe.UniqueValidationError,
            )


def get_current_week(church, on_date=None):
    """The Stothrakazhcha whose week contains on_date (today by default), if any."""
    on_date = getdate(on_date)
    return frappe.db.get_value(
        "Stothrakazhcha",
        {
            "church": church,
            "week_start_date": ("<=", on_date),
            "week_end_date": (">=", on_date),
        },
        "name",
    )
