from frappe.model.document import Document


class ContributionEntry(Document):
    pass
