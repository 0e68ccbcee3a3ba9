import frappe
import unittest
from frappe.utils import add_days, flt, nowdate

from church_admin import api
from church_admin.tests.fixtures import make_campaign, make_church_tree, make_stothrakazhcha, make_user


class TestApi(unittest.TestCase):
    """Whitelisted endpoints: who may call them and the shape of what they return."""

    @classmethod
    def setUpClass(cls):
        frappe.flags.ignore_permissions = True
        cls.tree = make_church_tree("API")
        cls.m1, cls.m2, cls.m3 = cls.tree.members
        cls.admin = make_user("Church Admin", cls.m1)
        cls.member_user = make_user("Church Member", cls.m3)

    def tearDown(self):
        frappe.set_user("Administrator")

    def test_member_contributes_as_themselves(self):
        stk = make_stothrakazhcha(self.tree.church, week_number=30)
        frappe.set_user(self.member_user)

        summary = api.contribute_to_stothrakazhcha(stk.name, 80)
        self.assertEqual(summary["total_collected"], 80)

        frappe.set_user("Administrator")
        stk.reload()
        self.assertEqual(stk.contributors[0].contributor, self.m3)

    def test_per_house_offering_is_credited_to_the_house(self):
        stk = make_stothrakazhcha(self.tree.church, week_number=31, amount_type="Per House")
        frappe.set_user(self.member_user)
        api.contribute_to_stothrakazhcha(stk.name, 80)

        frappe.set_user(self.admin)
        api.contribute_to_stothrakazhcha(stk.name, 90, house=self.tree.houses[0])

        frappe.set_user("Administrator")
        stk.reload()
        self.assertEqual(
            [(r.contributor_type, r.contributor) for r in stk.contributors],
            [("House", self.tree.houses[1]), ("House", self.tree.houses[0])],
        )

    def test_member_cannot_contribute_for_someone_else(self):
        camp = make_campaign(self.tree.church)
        frappe.set_user(self.member_user)
        with self.assertRaises(frappe.PermissionError):
            api.contribute_to_campaign(camp.name, 500, member=self.m2)

    def test_member_cannot_pay_dues_or_run_the_sweep(self):
        camp = make_campaign(self.tree.church)
        frappe.set_user(self.member_user)
        with self.assertRaises(frappe.PermissionError):
            api.process_campaign_dues(camp.name)
        with self.assertRaises(frappe.PermissionError):
            api.pay_due("CDUE-00001", "campaign", 100)

    def test_scoped_admin_must_name_the_event(self):
        frappe.set_user(self.admin)
        with self.assertRaises(frappe.PermissionError):
            api.process_stothrakazhcha_dues()

    def test_admin_flow_contribute_sweep_list_and_pay(self):
        camp = make_campaign(self.tree.church, campaign_name="_Test API Feast Fund")
        frappe.set_user(self.admin)

        api.contribute_to_campaign(camp.name, 500, member=self.m1, payment_method="UPI")
        result = api.process_campaign_dues(camp.name)
        self.assertEqual(result["total_members_processed"], 2)

        house_b_dues = [d for d in api.get_dues(house=self.tree.houses[1]) if d["event"] == camp.name]
        self.assertEqual(len(house_b_dues), 1)
        due = house_b_dues[0]
        self.assertEqual(due["due_type"], "campaign")
        self.assertEqual(due["type"], "member")
        self.assertEqual(due["campaign_name"], "_Test API Feast Fund")
        self.assertEqual(due["due_amount"], 500)
        self.assertEqual(due["remaining_amount"], 500)
        self.assertTrue(due["hierarchical_number"].endswith("-2-1"))
        self.assertEqual(
            due["hierarchical_number"],
            frappe.db.get_value("Member", due["due_for"], "hierarchical_number"),
        )

        paid = api.pay_due(due["due"], "campaign", 500, "Cash")
        self.assertEqual(paid["is_paid"], 1)
        self.assertEqual(paid["balance"], 0)

        # Paid dues drop out of the unpaid listing
        remaining = [d for d in api.get_dues(member=self.m3) if d["event"] == camp.name]
        self.assertEqual(remaining, [])

        summary = api.get_dues_for_payer("Member", self.m3)["summary"]
        self.assertGreaterEqual(summary["paid_dues"], 1)
        self.assertGreaterEqual(flt(summary["total_paid_amount"]), 500)

        event = api.get_event_summary("campaign", camp.name)
        self.assertEqual(event["total_collected"], 1000)
        self.assertEqual(event["dues_processed"], 1)

    def test_current_week_defaults_to_callers_church(self):
        frappe.set_user(self.member_user)
        # No week of this church covers today in the test data
        self.assertIsNone(api.get_current_week_stothrakazhcha())

    def test_active_news_respects_date_window(self):
        def news(start, end):
            return frappe.get_doc({
                "doctype": "News",
                "title": f"_Test Notice {frappe.generate_hash(length=6)}",
                "church": self.tree.church,
                "content_type": "Text",
                "content": "Choir practice moved to Saturday.",
                "start_date": start,
                "end_date": end,
            }).insert().name

        current = news(add_days(nowdate(), -1), add_days(nowdate(), 1))
        expired = news(add_days(nowdate(), -10), add_days(nowdate(), -5))

        names = [n.name for n in api.get_active_news(self.tree.church)]
        self.assertIn(current, names)
        self.assertNotIn(expired, names)
