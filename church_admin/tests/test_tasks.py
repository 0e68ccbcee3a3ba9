import frappe
import unittest

from church_admin import dues, tasks
from church_admin.dues import Payer, PayerType
from church_admin.exceptions import LedgerIntegrityError
from church_admin.tests.fixtures import make_campaign, make_church_tree, make_stothrakazhcha


class TestTasks(unittest.TestCase):
    """Scheduled sweep, ledger audit and weekly summary."""

    @classmethod
    def setUpClass(cls):
        frappe.flags.ignore_permissions = True
        cls.tree = make_church_tree("Tasks")

    def test_daily_sweep_processes_both_event_kinds(self):
        camp = make_campaign(self.tree.church, due_date="2091-05-01", start_date="2091-01-01")
        stk = make_stothrakazhcha(self.tree.church, week_number=18, year=2091)

        totals = tasks.process_all_dues(as_of="2091-06-01")
        # Both events assess all three members
        self.assertGreaterEqual(totals["members_processed"], 6)
        self.assertEqual(frappe.db.get_value("Campaign", camp.name, "dues_processed"), 1)
        self.assertEqual(frappe.db.get_value("Stothrakazhcha", stk.name, "status"), "Processed")

        totals = tasks.process_all_dues(as_of="2091-06-01")
        self.assertEqual(totals, {"members_processed": 0, "houses_processed": 0})

    def test_failing_event_is_isolated(self):
        broken = make_campaign(self.tree.church, due_date="2092-05-01", start_date="2092-01-01")
        healthy = make_campaign(self.tree.church, due_date="2092-05-01", start_date="2092-01-01")
        # A due already present for this payer makes the broken campaign's insert collide
        frappe.get_doc({
            "doctype": "Campaign Due",
            "church": self.tree.church,
            "campaign": broken.name,
            "due_date": "2092-05-01",
            "due_for_type": "Member",
            "due_for": self.tree.members[2],
            "due_for_name": "_Test Preexisting",
            "amount": 500,
        }).insert()

        result = dues.process_dues("campaign", as_of="2092-05-01")
        self.assertIn(broken.name, result["failed"])
        self.assertIn(healthy.name, [p["event"] for p in result["processed"]])
        self.assertEqual(frappe.db.get_value("Campaign", broken.name, "dues_processed"), 0)
        self.assertEqual(frappe.db.count("Campaign Due", {"campaign": broken.name}), 1)
        self.assertEqual(frappe.db.count("Campaign Due", {"campaign": healthy.name}), 3)

    def test_audit_reports_diverging_totals(self):
        camp = make_campaign(self.tree.church)
        dues.contribute("campaign", camp.name, Payer(PayerType.MEMBER, self.tree.members[0]), 500)
        self.assertEqual(dues.verify_event_totals("campaign", camp.name)["total_collected"], 500)

        frappe.db.set_value("Campaign", camp.name, "total_collected", 900)
        self.assertIn(camp.name, tasks.audit_event_totals())
        with self.assertRaises(LedgerIntegrityError):
            dues.verify_event_totals("campaign", camp.name)

    def test_weekly_summary_groups_by_church(self):
        dues.create_transaction("Thirunnaal Panam", 1200, self.tree.church)
        rows = tasks.weekly_contribution_summary()
        mine = [r for r in rows if r.church == self.tree.church and r.transaction_type == "Thirunnaal Panam"]
        self.assertEqual(len(mine), 1)
        self.assertEqual(mine[0].total, 1200)
