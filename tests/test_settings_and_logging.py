"""
Tests for settings loading, credential models and logging setup.
"""

import json
import logging

import pytest
from pydantic import SecretStr, ValidationError

from autodbinstall.domain.credential import Credential
from autodbinstall.domain.install.models import SecretArgument, mask_arguments, render_arguments
from autodbinstall.domain.settings import DEFAULT_THROTTLE, InstallSettings
from autodbinstall.infrastructure.logging_config import SecretMaskingFilter, mask_secrets, setup_logging
from autodbinstall.infrastructure.settings_loader import load_settings


class TestLoadSettings:
    """Test cases for load_settings."""

    def test_defaults_without_path(self):
        settings = load_settings(None)
        assert settings.throttle == DEFAULT_THROTTLE
        assert settings.timeouts.installer_timeout == 7200

    def test_missing_optional_file(self, tmp_path):
        assert load_settings(tmp_path / "missing.json") == InstallSettings()

    def test_missing_required_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "missing.json", required=True)

    def test_partial_document(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"throttle": 10, "winrm": {"use_https": True}}), encoding="utf-8")

        settings = load_settings(path)

        assert settings.throttle == 10
        assert settings.winrm.use_https is True
        assert settings.winrm.port_https == 5986

    @pytest.mark.parametrize("content", ["", "{not json", json.dumps({"throttle": 0})])
    def test_broken_documents(self, tmp_path, content):
        path = tmp_path / "settings.json"
        path.write_text(content, encoding="utf-8")

        with pytest.raises(ValueError) as excinfo:
            load_settings(path)
        assert "settings" in str(excinfo.value).lower()


class TestCredential:
    """Test cases for Credential."""

    def test_password_hidden(self):
        credential = Credential(username="CORP\\svc", password="Hunter2!")

        assert "Hunter2!" not in repr(credential)
        assert "Hunter2!" not in credential.model_dump_json()
        assert credential.get_password() == "Hunter2!"

    def test_empty_username_rejected(self):
        with pytest.raises(ValidationError):
            Credential(username="  ")

    def test_empty_password_allowed(self):
        assert Credential(username="NT Service\\MSSQLSERVER").has_password is False


class TestSecretArguments:
    """Secret argument rendering."""

    def test_render_and_mask(self):
        arguments = ['/ConfigurationFile="C:\\c.ini"', SecretArgument("SAPWD", SecretStr("Pa$$w0rd!"))]

        assert render_arguments(arguments)[1] == '/SAPWD="Pa$$w0rd!"'
        assert mask_arguments(arguments) == '/ConfigurationFile="C:\\c.ini" /SAPWD=********'


class TestLogging:
    """Test cases for the logging configuration."""

    def test_mask_secrets(self):
        text = 'setup.exe /SAPWD="abc def" /SQLSVCPASSWORD=xyz /QUIET'
        assert mask_secrets(text) == "setup.exe /SAPWD=******** /SQLSVCPASSWORD=******** /QUIET"

    def test_filter_rewrites_formatted_message(self):
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "Running %s", ('/SAPWD="x1"',), None)

        assert SecretMaskingFilter().filter(record) is True
        assert record.getMessage() == "Running /SAPWD=********"

    def test_setup_logging_writes_file(self, tmp_path):
        log_file = tmp_path / "logs" / "install.log"
        try:
            setup_logging(logging.INFO, str(log_file), use_colors=False)
            logging.getLogger("autodbinstall.test").debug('arguments /AGTSVCPASSWORD="s3cret"')
            for handler in logging.getLogger().handlers:
                handler.flush()

            content = log_file.read_text(encoding="utf-8")
            assert "AutoDBInstall Logging Initialized" in content
            assert "/AGTSVCPASSWORD=********" in content
            assert "s3cret" not in content
            assert logging.getLogger("winrm").level == logging.WARNING
        finally:
            for handler in list(logging.getLogger().handlers):
                handler.close()
                logging.getLogger().removeHandler(handler)
