"""Tests for database module (env requirements, connection check)."""

import os
import pytest
import pymysql
from unittest.mock import patch

from tests.conftest import MockConnection, MockCursor


class TestRequiredEnvVars:
    """DB_PASSWORD must be set, no empty default."""

    def test_missing_password_raises(self):
        from db.database import _get_required_env
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(RuntimeError, match="DB_PASSWORD"):
                _get_required_env("DB_PASSWORD")

    def test_password_with_value_succeeds(self):
        from db.database import _get_required_env
        with patch.dict(os.environ, {"DB_PASSWORD": "secret"}):
            assert _get_required_env("DB_PASSWORD") == "secret"

    def test_config_uses_dict_cursor(self):
        from db.database import DB_CONFIG
        assert DB_CONFIG["cursorclass"] is pymysql.cursors.DictCursor
        assert DB_CONFIG["autocommit"] is False


class TestCheckConnection:
    def test_reachable(self):
        from db.database import check_connection
        conn = MockConnection(MockCursor(results=[{"VERSION()": "11.4.2-MariaDB"}]))
        with patch("db.database.get_connection", return_value=conn):
            assert check_connection() is True
        assert conn.closed

    def test_unreachable(self):
        from db.database import check_connection
        with patch("db.database.get_connection",
                   side_effect=pymysql.err.OperationalError(2003, "Can't connect")):
            assert check_connection() is False
