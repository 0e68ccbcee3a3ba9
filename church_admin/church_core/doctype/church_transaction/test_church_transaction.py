import frappe
import unittest

from church_admin.dues import create_transaction
from church_admin.exceptions import DuesValidationError
from church_admin.tests.fixtures import make_church_tree


class TestChurchTransaction(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        frappe.flags.ignore_permissions = True
        cls.tree = make_church_tree("Transaction", houses=(("T", 1),))

    def test_receipt_number_assigned(self):
        txn = create_transaction("Lelam", 1500, self.tree.church, payment_method="Cash")
        self.assertRegex(txn.receipt_number, r"^RCP-\d+-\d{3}$")
        self.assertEqual(txn.name, txn.receipt_number)
        self.assertTrue(txn.payment_date)

    def test_scope_copied_onto_transaction(self):
        scope = {"unit": self.tree.unit, "house": self.tree.houses[0], "member": self.tree.members[0]}
        txn = create_transaction("Dashamansham", 250, self.tree.church, scope=scope)
        self.assertEqual(txn.house, self.tree.houses[0])
        self.assertEqual(txn.member, self.tree.members[0])

    def test_non_positive_amount_rejected(self):
        with self.assertRaises(DuesValidationError):
            create_transaction("Lelam", 0, self.tree.church)
