import frappe
from frappe.model.document import Document
from frappe.utils import flt, now_datetime

from church_admin.dues import make_receipt_number
from church_admin.exceptions import DuesValidationError


class ChurchTransaction(Document):
    def before_insert(self):
        if not self.receipt_number:
            self.receipt_number = make_receipt_number()
            while frappe.db.exists("Church Transaction", self.receipt_number):
                self.receipt_number = make_receipt_number()
        if not self.payment_date:
            self.payment_date = now_datetime()

    def validate(self):
        if flt(self.amount) <= 0:
            frappe.throw("Transaction amount must be greater than zero.", DuesValidationError)
        if bool(self.reference_doctype) != bool(self.reference_name):
            frappe.throw("Reference Doctype and Reference Name must be set together.")
