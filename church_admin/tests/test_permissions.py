import frappe
import unittest

from church_admin import permissions
from church_admin.setup import create_roles
from church_admin.tests.fixtures import make_church_tree, make_user


class TestPermissions(unittest.TestCase):
    """Role scoping resolved from the Member record linked to each user."""

    @classmethod
    def setUpClass(cls):
        frappe.flags.ignore_permissions = True
        cls.tree = make_church_tree("Permissions")
        cls.other = make_church_tree("Permissions Other", houses=(("Z", 1),))

        cls.church_admin = make_user("Church Admin", cls.tree.members[0])
        cls.unit_admin = make_user("Unit Admin", cls.tree.members[1])
        cls.kutayima_admin = make_user("Kutayima Admin", cls.tree.members[2])
        cls.member_user = make_user("Church Member", cls.other.members[0])
        cls.unlinked_admin = make_user("Church Admin")
        cls.super_admin = make_user("Church Super Admin")

    def test_super_admin_and_administrator_are_unscoped(self):
        self.assertIsNone(permissions.get_user_scope(self.super_admin))
        self.assertIsNone(permissions.get_user_scope("Administrator"))
        self.assertEqual(permissions.get_campaign_due_permission_query(self.super_admin), "")

    def test_church_admin_scoped_to_church(self):
        scope = permissions.get_user_scope(self.church_admin)
        self.assertEqual(scope.level, "church")
        self.assertEqual(scope.church, self.tree.church)

        condition = permissions.get_campaign_due_permission_query(self.church_admin)
        self.assertIn("`tabCampaign Due`.`church`", condition)
        self.assertIn(self.tree.church, condition)

    def test_unit_admin_sees_campaigns_of_their_church(self):
        condition = permissions.get_campaign_permission_query(self.unit_admin)
        self.assertIn("`tabCampaign`.`church`", condition)

        condition = permissions.get_house_permission_query(self.unit_admin)
        self.assertIn("`tabHouse`.`unit`", condition)
        self.assertIn(self.tree.unit, condition)

    def test_kutayima_admin_sees_own_bavanakutayima_row(self):
        condition = permissions.get_bavanakutayima_permission_query(self.kutayima_admin)
        self.assertIn("`tabBavanakutayima`.`name`", condition)
        self.assertIn(self.tree.bavanakutayima, condition)

    def test_member_scoped_to_own_house(self):
        condition = permissions.get_member_permission_query(self.member_user)
        self.assertIn("`tabMember`.`house`", condition)
        self.assertIn(self.other.houses[0], condition)

    def test_admin_without_member_record_sees_nothing(self):
        self.assertEqual(permissions.get_member_permission_query(self.unlinked_admin), "1=0")

    def test_has_scoped_permission_matches_documents(self):
        own_house = frappe.get_doc("House", self.tree.houses[1])
        foreign_house = frappe.get_doc("House", self.other.houses[0])

        self.assertTrue(permissions.has_scoped_permission(own_house, "read", self.unit_admin))
        self.assertFalse(permissions.has_scoped_permission(foreign_house, "read", self.unit_admin))
        self.assertTrue(permissions.has_scoped_permission(foreign_house, "read", self.super_admin))

    def test_admin_role_detection(self):
        self.assertTrue(permissions.is_church_admin(self.kutayima_admin))
        self.assertFalse(permissions.is_church_admin(self.member_user))

    def test_create_roles_covers_every_scoped_role(self):
        frappe.db.set_value("Role", "Church Member", "desk_access", 1)
        create_roles()

        for role_name, _level in permissions.ROLE_LEVELS:
            self.assertTrue(frappe.db.exists("Role", role_name))
        self.assertEqual(frappe.db.get_value("Role", "Church Member", "desk_access"), 0)
        self.assertEqual(frappe.db.get_value("Role", "Unit Admin", "desk_access"), 1)
