import unittest
from decimal import Decimal

from storeflow import create_app
from storeflow.extensions import db
from storeflow.models import CommissionSetting, TaxSetting
from storeflow.services import settings_service
from storeflow.services.commission_service import calculate_commission
from storeflow.services.settings_service import SettingsError
from storeflow.validation import NotFoundError


class SettingsServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
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
        db.session.query(TaxSetting).delete()
        db.session.query(CommissionSetting).delete()
        db.session.commit()

    def test_commission_setting_created_inactive(self):
        setting = settings_service.get_commission_setting()
        self.assertEqual(setting.id, settings_service.COMMISSION_SETTING_ID)
        self.assertFalse(setting.is_active)
        self.assertEqual(db.session.query(CommissionSetting).count(), 1)

        settings_service.get_commission_setting()
        self.assertEqual(db.session.query(CommissionSetting).count(), 1)

    def test_update_commission_setting(self):
        setting = settings_service.update_commission_setting({
            "is_active": True,
            "sales_target": "1000",
            "commission_interval": "500",
            "commission_percentage": "10",
        })
        self.assertTrue(setting.is_active)
        self.assertEqual(Decimal(setting.commission_interval), Decimal("500"))

        policy = settings_service.get_commission_policy()
        self.assertEqual(calculate_commission(Decimal("2000"), policy), Decimal("100"))

    def test_percentage_above_hundred(self):
        with self.assertRaises(SettingsError):
            settings_service.update_commission_setting({"commission_percentage": "150"})
        db.session.rollback()

    def test_active_setting_needs_interval(self):
        with self.assertRaises(SettingsError):
            settings_service.update_commission_setting({"is_active": True, "commission_interval": "0"})
        db.session.rollback()

    def test_upsert_tax_setting(self):
        tax = settings_service.upsert_tax_setting({"name": "VAT", "rate": "5"})
        same = settings_service.upsert_tax_setting({"name": "VAT", "rate": "7.5", "enabled": False})

        self.assertEqual(tax.id, same.id)
        self.assertEqual(Decimal(same.rate), Decimal("7.5"))
        self.assertEqual(settings_service.list_tax_settings(enabled_only=True), [])

    def test_tax_validation(self):
        with self.assertRaises(SettingsError):
            settings_service.upsert_tax_setting({"name": "", "rate": "5"})
        with self.assertRaises(SettingsError):
            settings_service.upsert_tax_setting({"name": "VAT", "rate": "101"})

    def test_delete_unknown_tax(self):
        with self.assertRaises(NotFoundError):
            settings_service.delete_tax_setting(999)


if __name__ == "__main__":
    unittest.main()
