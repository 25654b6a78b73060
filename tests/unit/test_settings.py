#!/usr/bin/env python3
"""
Unit tests for runtime settings and role capabilities.
"""

import os
import shutil
import tempfile
import unittest
import sys
from pathlib import Path
from unittest.mock import patch

from pydantic import ValidationError

sys.path.append(str(Path(__file__).resolve().parents[2]))

from parksystem.application.capabilities import Action, can
from parksystem.domain.models import UserRole
from parksystem.infrastructure.settings import Settings


class TestSettings(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_defaults(self):
        settings = Settings()
        self.assertEqual(settings.store, "memory")
        self.assertEqual(settings.namespace, "parking_system")
        self.assertTrue(settings.seed_demo)

    def test_from_environment(self):
        env = {
            "PARKSYSTEM_STORE": " Redis ",
            "REDIS_URL": "redis://cache:6379/2",
            "PARKSYSTEM_NAMESPACE": "lote_norte",
            "PARKSYSTEM_LOG_LEVEL": "debug",
            "PARKSYSTEM_SEED_DEMO": "no",
        }
        with patch.dict(os.environ, env):
            settings = Settings.from_env(os.path.join(self.temp_dir, "missing.env"))

        self.assertEqual(settings.store, "redis")
        self.assertEqual(settings.redis_url, "redis://cache:6379/2")
        self.assertEqual(settings.namespace, "lote_norte")
        self.assertEqual(settings.log_level, "DEBUG")
        self.assertFalse(settings.seed_demo)

    def test_dotenv_file_does_not_override_environment(self):
        env_file = Path(self.temp_dir) / ".env"
        env_file.write_text(
            "PARKSYSTEM_STORE=sql\nDATABASE_URL=sqlite:///./desde_archivo.db\n", encoding="utf-8"
        )
        with patch.dict(os.environ, {"PARKSYSTEM_STORE": "memory"}):
            os.environ.pop("DATABASE_URL", None)
            settings = Settings.from_env(str(env_file))

        self.assertEqual(settings.store, "memory")
        self.assertEqual(settings.database_url, "sqlite:///./desde_archivo.db")

    def test_invalid_values(self):
        with self.assertRaises(ValidationError):
            Settings(store="mongo")
        with self.assertRaises(ValidationError):
            Settings(log_level="LOUD")


class TestCapabilities(unittest.TestCase):

    def test_admin_can_do_everything(self):
        for action in Action:
            self.assertTrue(can(UserRole.ADMIN, action))

    def test_cashier(self):
        allowed = {
            Action.REGISTER_ENTRY, Action.REGISTER_EXIT, Action.RESERVE_SPACE,
            Action.PAY_SUBSCRIPTION, Action.VIEW_REPORTS,
        }
        for action in Action:
            self.assertEqual(can(UserRole.CASHIER, action), action in allowed, action)

    def test_role_given_as_value(self):
        self.assertFalse(can("cashier", Action.UPDATE_CONFIG))


if __name__ == '__main__':
    unittest.main(verbosity=2)
