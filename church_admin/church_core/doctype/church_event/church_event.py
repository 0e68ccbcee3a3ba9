from frappe.model.document import Document

from church_admin.church_core.doctype.news.news import validate_publication


class ChurchEvent(Document):
    def validate(self):
        validate_publication(self)
