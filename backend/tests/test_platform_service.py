import unittest

from duka import create_app
from duka.extensions import db
from duka.models import Organization, ModuleConfig, FeatureConfig, FooterLink, OnboardingContent
from duka.services import platform_service
from duka.services.platform_service import NotFoundError
from duka.validation import ConflictError, ValidationError


class PlatformServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        })
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(ModuleConfig).update({ModuleConfig.parent_module_id: None})
        db.session.query(ModuleConfig).delete()
        db.session.query(FeatureConfig).delete()
        db.session.query(FooterLink).delete()
        db.session.query(OnboardingContent).delete()
        db.session.query(Organization).delete()
        db.session.commit()

        self.org = Organization(name="Test Duka", code="TEST", subscription_plan="basic")
        db.session.add(self.org)
        db.session.commit()

    def _module(self, key, **flags):
        return platform_service.create_config("modules", {"module_key": key, "module_name": key.title(), **flags})

    def test_create_and_update_module(self):
        module = self._module("inventory", basic_enabled=True, display_order=2)
        self.assertTrue(module.basic_enabled)
        self.assertFalse(module.free_enabled)

        updated = platform_service.update_config("modules", module.id, {"module_name": "  Stock  "})
        self.assertEqual(updated.module_name, "Stock")

    def test_duplicate_key_conflicts(self):
        self._module("sales")
        with self.assertRaises(ConflictError):
            self._module("sales")

        other = self._module("payroll")
        with self.assertRaises(ConflictError):
            platform_service.update_config("modules", other.id, {"module_key": "sales"})

    def test_rejects_unknown_and_mistyped_fields(self):
        with self.assertRaises(ValidationError):
            platform_service.create_config("modules", {"module_key": "x", "module_name": "X", "price": 1})
        with self.assertRaises(ValidationError):
            platform_service.create_config("features", {"feature_key": "x", "feature_name": "X", "free_enabled": "yes"})
        with self.assertRaises(ValidationError):
            platform_service.create_config("footer-links", {"title": "Help"})

    def test_module_cannot_parent_itself(self):
        module = self._module("reports")
        with self.assertRaises(ValidationError):
            platform_service.update_config("modules", module.id, {"parent_module_id": module.id})

    def test_delete_parent_with_children_conflicts(self):
        parent = self._module("inventory", basic_enabled=True)
        child = self._module("stock-audit", basic_enabled=True, parent_module_id=parent.id)

        with self.assertRaises(ConflictError):
            platform_service.delete_config("modules", parent.id)

        platform_service.delete_config("modules", child.id)
        platform_service.delete_config("modules", parent.id)
        self.assertEqual(platform_service.list_config("modules"), [])

    def test_missing_row(self):
        with self.assertRaises(NotFoundError):
            platform_service.update_config("features", 999, {"feature_name": "Ghost"})
        with self.assertRaises(NotFoundError):
            platform_service.list_config("widgets")

    def test_enabled_modules_follow_plan_and_parent(self):
        parent = self._module("payroll", premium_enabled=True, basic_enabled=False)
        self._module("payroll-reports", basic_enabled=True, parent_module_id=parent.id)
        self._module("sales", basic_enabled=True, display_order=1)
        self._module("legacy", basic_enabled=True, is_active=False)

        keys = [m.module_key for m in platform_service.enabled_modules_for_org(self.org)]
        self.assertEqual(keys, ["sales"])

        platform_service.change_organization_plan(self.org.id, "premium")
        keys = [m.module_key for m in platform_service.enabled_modules_for_org(self.org)]
        self.assertEqual(keys, ["payroll", "payroll-reports", "sales"])

    def test_feature_gating(self):
        platform_service.create_config("features", {
            "feature_key": "mobile_money", "feature_name": "Mobile money", "basic_enabled": True,
        })
        platform_service.create_config("features", {
            "feature_key": "payroll_exports", "feature_name": "Payroll exports",
        })

        self.assertTrue(platform_service.is_feature_enabled(self.org, "mobile_money"))
        self.assertFalse(platform_service.is_feature_enabled(self.org, "payroll_exports"))
        self.assertFalse(platform_service.is_feature_enabled(self.org, "teleport"))

    def test_change_plan_validates(self):
        with self.assertRaises(ValidationError):
            platform_service.change_organization_plan(self.org.id, "platinum")
        with self.assertRaises(NotFoundError):
            platform_service.change_organization_plan(999, "basic")

    def test_public_content_only_active(self):
        platform_service.create_config("footer-links", {"title": "Terms", "url": "/terms", "category": "legal"})
        platform_service.create_config("footer-links", {"title": "Old", "url": "/old", "is_active": False})
        platform_service.create_config("onboarding", {"content_key": "welcome", "title": "Karibu"})

        self.assertEqual([link.title for link in platform_service.public_footer_links()], ["Terms"])
        self.assertEqual([c.content_key for c in platform_service.public_onboarding_content()], ["welcome"])

    def test_plan_price(self):
        self.assertEqual(platform_service.plan_price("basic"), 75_000)
        self.assertEqual(platform_service.plan_price("enterprise"), 500_000)
        with self.assertRaises(ValidationError):
            platform_service.plan_price("free")


if __name__ == "__main__":
    unittest.main()
