import frappe
from frappe.model.document import Document
from frappe.utils import getdate


class News(Document):
    def validate(self):
        validate_publication(self)


def validate_publication(doc):
    """Shared by News and Church Event."""
    if doc.end_date and doc.start_date and getdate(doc.end_date) < getdate(doc.start_date):
        frappe.throw("End Date cannot be before Start Date.")
    if doc.content_type in ("Image", "Video") and not doc.media_url:
        frappe.throw(f"Media URL is required for {doc.content_type} content.")
