"""
Tests for target identifier parsing and target resolution.
"""

from unittest.mock import MagicMock

import pytest

from autodbinstall.application.install.targets import SocketNameResolver, resolve_target
from autodbinstall.domain.install.models import Target
from autodbinstall.domain.results import Failure, Success
from autodbinstall.domain.targets import DEFAULT_INSTANCE, TargetParser


class TestTargetParser:
    """Test cases for TargetParser."""

    def setup_method(self):
        self.parser = TargetParser()

    def test_hostname_only(self):
        """A bare host name targets the default instance."""
        result = self.parser.parse_target_id("sql01")

        assert isinstance(result, Success)
        assert result.value.hostname == "sql01"
        assert result.value.instance_name is None
        assert result.value.effective_instance == DEFAULT_INSTANCE

    @pytest.mark.parametrize("target_id", ["sql01\\APP", "sql01|APP"])
    def test_named_instance(self, target_id):
        """Backslash and pipe both separate the instance."""
        result = self.parser.parse_target_id(target_id)

        assert isinstance(result, Success)
        assert result.value.hostname == "sql01"
        assert result.value.instance_name == "APP"

    def test_port_suffix(self):
        """Trailing ,port is split off."""
        result = self.parser.parse_target_id("sql01\\APP,14330")

        assert isinstance(result, Success)
        assert result.value.instance_name == "APP"
        assert result.value.port == 14330

    def test_colon_port_suffix(self):
        """Trailing :port is split off like ,port."""
        result = self.parser.parse_target_id("sql01:1433")

        assert isinstance(result, Success)
        assert result.value.hostname == "sql01"
        assert result.value.instance_name is None
        assert result.value.port == 1433

    def test_default_instance_name_is_normalised(self):
        """Naming MSSQLSERVER explicitly is the same as naming nothing."""
        result = self.parser.parse_target_id("sql01\\mssqlserver")

        assert isinstance(result, Success)
        assert result.value.instance_name is None

    @pytest.mark.parametrize("target_id", ["", "   ", "\\APP", "sql01,abc", "sql01,70000", "sql01:abc"])
    def test_invalid_identifiers(self, target_id):
        """Malformed identifiers fail instead of raising."""
        assert isinstance(self.parser.parse_target_id(target_id), Failure)


class TestTarget:
    """Test cases for the Target model."""

    def test_key_is_case_insensitive(self):
        """Same host and instance give the same serialisation key."""
        a = Target(name="sql01", instance_name="app", fqdn="SQL01.corp.local")
        b = Target(name="SQL01", instance_name="APP", fqdn="sql01.CORP.local")

        assert a.key == b.key

    def test_display_name(self):
        assert Target(name="sql01", fqdn="sql01").display_name == "sql01"
        assert Target(name="sql01", instance_name="APP", fqdn="sql01").display_name == "sql01\\APP"

    def test_target_is_immutable(self):
        target = Target(name="sql01", fqdn="sql01")
        with pytest.raises(Exception):
            target.name = "other"


class TestResolveTarget:
    """Test cases for resolve_target."""

    def _resolver(self, fqdn="sql01.corp.local", local=False):
        resolver = MagicMock()
        resolver.resolve.return_value = fqdn
        resolver.is_local.return_value = local
        return resolver

    def test_resolves_fqdn(self):
        result = resolve_target("sql01\\APP", self._resolver())

        assert isinstance(result, Success)
        assert result.value.fqdn == "sql01.corp.local"
        assert result.value.instance_name == "APP"
        assert result.value.is_local is False

    def test_run_defaults_fill_missing_parts(self):
        """Run-wide instance and port apply when the identifier has none."""
        result = resolve_target("sql01", self._resolver(), port=1500, instance_name="SHARED")

        assert result.value.instance_name == "SHARED"
        assert result.value.port == 1500

    def test_identifier_wins_over_run_defaults(self):
        result = resolve_target("sql01\\APP,1433", self._resolver(), port=1500, instance_name="SHARED")

        assert result.value.instance_name == "APP"
        assert result.value.port == 1433

    def test_colon_port_reaches_target(self):
        result = resolve_target("sql01:1433", self._resolver())

        assert result.value.name == "sql01"
        assert result.value.port == 1433

    def test_resolver_error_is_failure(self):
        resolver = self._resolver()
        resolver.resolve.side_effect = OSError("no such host")

        result = resolve_target("ghost", resolver)

        assert isinstance(result, Failure)
        assert "ghost" in result.error


class TestSocketNameResolver:
    """Test cases for local host detection."""

    @pytest.mark.parametrize("host", ["localhost", "127.0.0.1", ".", "(local)", "LOCALHOST"])
    def test_localhost_patterns(self, host):
        assert SocketNameResolver().is_local(host) is True

    def test_remote_host(self, monkeypatch):
        monkeypatch.setattr("socket.gethostname", lambda: "orchestrator")
        assert SocketNameResolver().is_local("sql01") is False
        assert SocketNameResolver().is_local("ORCHESTRATOR") is True
