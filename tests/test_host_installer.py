"""
Tests for the per-host install state machine.
"""

import logging
import os

from autodbinstall.application.install.host_installer import HostInstaller, HostInstallState
from autodbinstall.application.install.ports import InstallerOutcome, RemoteOperation
from autodbinstall.application.install.request import InstallRequest
from autodbinstall.application.install.run_state import RunDecisions
from autodbinstall.domain.credential import Credential, ServiceCredentials
from autodbinstall.domain.install.models import AuthenticationMode
from autodbinstall.domain.install.versions import StaticBuildCatalog, resolve_version
from conftest import MEDIA_ROOT, SETUP_2014, SETUP_2017, failed, make_executor, media_listing, operations_called

REMOTE_INI = "C:\\Users\\svc\\AppData\\Local\\Temp\\abc_Configuration.ini"


def make_installer(executor, settings, version="2017", **request_fields):
    request_fields.setdefault("media_paths", [MEDIA_ROOT])
    request_fields.setdefault("admin_accounts", ["CORP\\dba"])
    request = InstallRequest(version=version, **request_fields)
    return HostInstaller(
        executor=executor,
        request=request,
        version=resolve_version(version, StaticBuildCatalog()),
        settings=settings,
        decisions=RunDecisions(),
    )


def staged_files(settings):
    folder = settings.staging_directory
    return os.listdir(folder) if os.path.isdir(folder) else []


class TestSuccessfulInstall:
    """Happy paths."""

    def test_default_install_2017(self, executor, settings, target):
        result = make_installer(executor, settings).run(target)

        assert result.success is True
        assert result.exit_code == 0
        assert result.restarted is False
        assert result.notes == []
        assert result.installer == SETUP_2017["path"]
        assert result.protocol == "Default"
        assert result.build == "14.0.1000"
        assert result.log.startswith("Overall summary")
        assert result.configuration["OPTIONS"]["FEATURES"][0] == "SQLENGINE"
        assert result.finished_at is not None

    def test_installer_arguments(self, executor, settings, target):
        make_installer(executor, settings).run(target)

        host, _cred, _proto, exe, arguments = executor.run_installer.call_args.args
        assert host == "sql01.corp.local"
        assert exe == SETUP_2017["path"]
        assert arguments == [f'/ConfigurationFile="{REMOTE_INI}"', "/IACCEPTSQLSERVERLICENSETERMS"]

    def test_legacy_version_has_no_license_switch(self, settings, target):
        legacy = dict(SETUP_2014, path="\\\\fs01\\media\\SQL2008R2\\setup.exe", product_version="10.50.1600.1")
        executor = make_executor({RemoteOperation.LIST_SETUP_FILES: media_listing(legacy)})

        result = make_installer(executor, settings, version="2008R2").run(target)

        assert result.success is True
        arguments = executor.run_installer.call_args.args[4]
        assert "/IACCEPTSQLSERVERLICENSETERMS" not in arguments
        assert "SQLSERVER2008" in result.configuration

    def test_reboot_required_exit_code(self, executor, settings, target):
        executor.run_installer.return_value = InstallerOutcome(exit_code=3010)

        result = make_installer(executor, settings).run(target)

        assert result.success is True
        assert result.exit_code == 3010
        assert result.restarted is False
        assert any("3010" in n for n in result.notes)
        assert any("Restart is required" in n for n in result.notes)
        executor.reboot_and_wait.assert_not_called()

    def test_reboot_after_install_when_allowed(self, executor, settings, target):
        executor.run_installer.return_value = InstallerOutcome(exit_code=3010)

        result = make_installer(executor, settings, restart=True).run(target)

        assert result.success is True
        assert result.restarted is True
        executor.reboot_and_wait.assert_called_once()

    def test_port_and_volume_maintenance(self, executor, settings, make_target):
        services = ServiceCredentials(engine=Credential(username="CORP\\svc_sql", password="Pw#12345"))
        installer = make_installer(executor, settings, version="2014", perform_volume_maintenance_tasks=True,
                                   service_credentials=services)

        result = installer.run(make_target(instance_name="APP", port=14330))

        assert result.success is True
        executor.grant_volume_maintenance.assert_called_once_with("sql01.corp.local", None, "CORP\\svc_sql")
        executor.set_service_port.assert_called_once_with("sql01.corp.local", "APP", None, 14330)

    def test_post_install_failures_are_notes(self, executor, settings, make_target):
        executor.set_service_port.return_value = failed("registry key missing")

        result = make_installer(executor, settings).run(make_target(port=14330))

        assert result.success is True
        assert any("registry key missing" in n for n in result.notes)

    def test_local_target_skips_copy(self, executor, settings, make_target):
        result = make_installer(executor, settings).run(make_target("localhost", is_local=True))

        assert result.success is True
        executor.copy_to_remote.assert_not_called()
        arguments = executor.run_installer.call_args.args[4]
        assert arguments[0].startswith('/ConfigurationFile="' + settings.staging_directory)
        assert RemoteOperation.REMOVE_FILE not in operations_called(executor)
        assert staged_files(settings) == []


class TestFailures:
    """Abort paths."""

    def test_non_zero_exit_code(self, executor, settings, target):
        executor.run_installer.return_value = InstallerOutcome(exit_code=1603)

        result = make_installer(executor, settings).run(target)

        assert result.success is False
        assert result.exit_code == 1603
        assert any("exit code 1603" in n for n in result.notes)
        assert RemoteOperation.REMOVE_FILE in operations_called(executor)
        assert staged_files(settings) == []

    def test_unsupported_feature_never_runs_setup(self, executor, settings, target):
        result = make_installer(executor, settings, version="2014", features=["AnalysisServices"]).run(target)

        assert result.success is False
        assert result.notes == ["Feature AnalysisServices is not supported on SQL2014"]
        executor.run_installer.assert_not_called()
        executor.copy_to_remote.assert_not_called()

    def test_unknown_version(self, executor, settings, target):
        result = make_installer(executor, settings, version="2005").run(target)

        assert result.success is False
        assert executor.exec_remote.call_count == 0

    def test_pending_reboot_blocks(self, executor, settings, target):
        executor.is_reboot_pending.return_value = True
        installer = make_installer(executor, settings)

        result = installer.run(target)

        assert result.success is False
        assert any("pending a reboot" in n for n in result.notes)
        executor.run_installer.assert_not_called()
        executor.exec_remote.assert_not_called()

    def test_pending_reboot_with_restart(self, executor, settings, target):
        executor.is_reboot_pending.side_effect = [True, False]

        result = make_installer(executor, settings, restart=True).run(target)

        assert result.success is True
        assert result.restarted is True
        executor.reboot_and_wait.assert_called_once()

    def test_pending_reboot_on_local_host_blocks_even_with_restart(self, executor, settings, make_target):
        executor.is_reboot_pending.return_value = True

        result = make_installer(executor, settings, restart=True).run(make_target("localhost", is_local=True))

        assert result.success is False
        executor.reboot_and_wait.assert_not_called()

    def test_media_not_found(self, settings, target):
        executor = make_executor({RemoteOperation.LIST_SETUP_FILES: media_listing(reachable=False)})

        result = make_installer(executor, settings).run(target)

        assert result.success is False
        assert any("reachable" in n for n in result.notes)
        executor.run_installer.assert_not_called()

    def test_copy_failure_cleans_local_file(self, executor, settings, target):
        executor.copy_to_remote.return_value = failed("disk full")

        result = make_installer(executor, settings).run(target)

        assert result.success is False
        assert any("disk full" in n for n in result.notes)
        assert staged_files(settings) == []
        executor.run_installer.assert_not_called()

    def test_installer_timeout(self, executor, settings, target):
        executor.run_installer.return_value = InstallerOutcome(exit_code=None, timed_out=True)

        result = make_installer(executor, settings).run(target)

        assert result.success is False
        assert any("timed out" in n for n in result.notes)
        assert staged_files(settings) == []

    def test_unexpected_exception_is_contained(self, executor, settings, target):
        executor.run_installer.side_effect = RuntimeError("transport exploded")

        result = make_installer(executor, settings).run(target)

        assert result.success is False
        assert any("transport exploded" in n for n in result.notes)
        assert RemoteOperation.REMOVE_FILE in operations_called(executor)
        assert staged_files(settings) == []

    def test_log_capture_failure_is_a_note(self, settings, target):
        executor = make_executor({RemoteOperation.READ_SETUP_LOG: failed("Summary.txt not found")})

        result = make_installer(executor, settings).run(target)

        assert result.success is True
        assert result.log is None
        assert any("Summary.txt not found" in n for n in result.notes)


class TestSecrets:
    """Passwords stay out of logs and files."""

    def test_sa_password_masked_in_logs(self, executor, settings, target, caplog, tmp_path):
        caplog.set_level(logging.DEBUG)
        saved = tmp_path / "saved"
        installer = make_installer(executor, settings, authentication_mode=AuthenticationMode.MIXED,
                                   save_configuration=str(saved))

        result = installer.run(target)
        password = result.sa_credential.get_password()

        arguments = executor.run_installer.call_args.args[4]
        assert f'/SAPWD="{password}"' in arguments
        assert "/SAPWD=********" in caplog.text
        assert password not in caplog.text

        copy = saved / "Configuration_sql01_MSSQLSERVER.ini"
        assert copy.exists()
        assert result.configuration_path == str(copy)
        assert password not in copy.read_text(encoding="utf-8")
        assert 'SECURITYMODE="SQL"' in copy.read_text(encoding="utf-8")

    def test_states_visited_in_order(self, executor, settings, target, monkeypatch):
        seen = []
        original = HostInstaller._cleanup

        def spy(self, ctx):
            seen.extend(ctx.history)
            return original(self, ctx)
        monkeypatch.setattr(HostInstaller, "_cleanup", spy)

        make_installer(executor, settings).run(target)

        assert seen[0] == HostInstallState.READY_CHECK
        assert seen[-1] == HostInstallState.DONE
        assert HostInstallState.EXECUTED in seen
