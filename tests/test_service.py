"""
Tests for the installation service fan-out.
"""

import logging
from unittest.mock import MagicMock

from autodbinstall.application.install.ports import InstallerOutcome, RemoteOperation
from autodbinstall.application.install.request import InstallRequest
from autodbinstall.application.install.service import InstallService, install_sql_server
from autodbinstall.domain.credential import Credential
from autodbinstall.domain.install.models import AuthMethod
from conftest import MEDIA_ROOT, failed, make_executor, ok


def fake_resolver():
    resolver = MagicMock()
    resolver.resolve.side_effect = lambda host: f"{host.lower()}.corp.local"
    resolver.is_local.return_value = False
    return resolver


def request(**fields):
    fields.setdefault("version", "2017")
    fields.setdefault("media_paths", [MEDIA_ROOT])
    fields.setdefault("admin_accounts", ["CORP\\dba"])
    return InstallRequest(**fields)


class TestInstallService:
    """Test cases for InstallService."""

    def test_one_result_per_target(self, executor, settings):
        service = InstallService(executor, settings=settings, resolver=fake_resolver())

        results = service.install(["sql01", "sql02\\APP", "sql03,14330"], request(), throttle=2)

        assert len(results) == 3
        assert all(r.success for r in results)
        assert {r.computer for r in results} == {"sql01", "sql02", "sql03"}
        by_name = {r.computer: r for r in results}
        assert by_name["sql02"].instance_name == "APP"
        assert by_name["sql03"].port == 14330

    def test_failing_target_does_not_affect_others(self, executor, settings):
        def run_installer(host, credential, protocol, exe, arguments):
            if host.startswith("sql02"):
                raise ConnectionResetError("connection reset by peer")
            return InstallerOutcome(exit_code=0)
        executor.run_installer.side_effect = run_installer
        service = InstallService(executor, settings=settings, resolver=fake_resolver())

        results = service.install(["sql01", "sql02", "sql03"], request())

        by_name = {r.computer: r for r in results}
        assert by_name["sql02"].success is False
        assert by_name["sql01"].success and by_name["sql03"].success

    def test_invalid_identifier_yields_failed_result(self, executor, settings):
        service = InstallService(executor, settings=settings, resolver=fake_resolver())

        results = service.install(["sql01", "\\APP"], request())

        assert len(results) == 2
        bad = [r for r in results if not r.success]
        assert len(bad) == 1 and bad[0].computer == "\\APP"

    def test_unknown_version_fails_every_target(self, executor, settings):
        service = InstallService(executor, settings=settings, resolver=fake_resolver())

        results = service.install(["sql01", "sql02"], request(version="2005"))

        assert [r.success for r in results] == [False, False]
        assert all("2005" in r.notes[0] for r in results)
        executor.exec_remote.assert_not_called()

    def test_run_wide_instance_and_port(self, executor, settings):
        service = InstallService(executor, settings=settings, resolver=fake_resolver())

        results = service.install(["sql01"], request(instance_name="SHARED", port=1500))

        assert results[0].instance_name == "SHARED"
        executor.set_service_port.assert_called_once_with("sql01.corp.local", "SHARED", None, 1500)

    def test_fallback_prompted_once_per_run(self, settings):
        def ping(host, credential, protocol, command):
            return failed("CredSSP refused") if protocol == AuthMethod.CREDSSP else ok("OK")
        executor = make_executor({RemoteOperation.PING: ping})
        confirm = MagicMock(return_value=True)
        service = InstallService(executor, settings=settings, resolver=fake_resolver())
        credential = Credential(username="CORP\\installer", password="Secret#1")

        results = service.install([f"sql{i:02d}" for i in range(6)], request(credential=credential),
                                  throttle=3, confirm=confirm)

        confirm.assert_called_once()
        assert all(r.success for r in results)
        assert all(r.protocol == "Default" for r in results)

    def test_non_interactive_run_declines_fallback(self, settings):
        def ping(host, credential, protocol, command):
            return failed("CredSSP refused") if protocol == AuthMethod.CREDSSP else ok("OK")
        executor = make_executor({RemoteOperation.PING: ping})
        service = InstallService(executor, settings=settings, resolver=fake_resolver())
        credential = Credential(username="CORP\\installer", password="Secret#1")

        results = service.install(["sql01", "sql02"], request(credential=credential))

        assert not any(r.success for r in results)
        executor.run_installer.assert_not_called()

    def test_aborted_confirmation_declines_for_whole_run(self, settings):
        def ping(host, credential, protocol, command):
            return failed("CredSSP refused") if protocol == AuthMethod.CREDSSP else ok("OK")
        executor = make_executor({RemoteOperation.PING: ping})
        confirm = MagicMock(side_effect=RuntimeError("Aborted!"))
        service = InstallService(executor, settings=settings, resolver=fake_resolver())
        credential = Credential(username="CORP\\installer", password="Secret#1")

        results = service.install(["sql01", "sql02", "sql03"], request(credential=credential),
                                  throttle=1, confirm=confirm)

        confirm.assert_called_once()
        assert not any(r.success for r in results)
        assert not any("Unexpected failure" in note for r in results for note in r.notes)
        executor.run_installer.assert_not_called()

    def test_credential_warning_once(self, executor, settings, caplog):
        caplog.set_level(logging.WARNING)
        service = InstallService(executor, settings=settings, resolver=fake_resolver())

        service.install(["sql01", "sql02", "sql03", "sql04"], request(), throttle=4)

        assert caplog.text.count("double hop") == 1

    def test_iter_install_streams(self, executor, settings):
        service = InstallService(executor, settings=settings, resolver=fake_resolver())

        stream = service.iter_install(["sql01", "sql02"], request())
        first = next(stream)

        assert first.computer in {"sql01", "sql02"}
        assert len(list(stream)) == 1


def test_install_sql_server_entry_point(executor, settings):
    results = install_sql_server(["sql01"], request(), executor, settings=settings, resolver=fake_resolver())

    assert len(results) == 1
    assert results[0].success is True
    assert results[0].exit_code == 0
