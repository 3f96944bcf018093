"""
Tests for setup media lookup.
"""

from autodbinstall.application.install.media_locator import (
    MediaLookupError,
    SetupFileInfo,
    SetupMediaLocator,
    is_excluded,
    select_setup_file,
)
from autodbinstall.application.install.ports import RemoteOperation
from autodbinstall.domain.install.models import AuthMethod
from autodbinstall.domain.results import Failure, Success
from conftest import MEDIA_ROOT, SETUP_2017, SETUP_2019, failed, make_executor, media_listing, sql_version


def locate(executor, version="2017", roots=None):
    locator = SetupMediaLocator(executor)
    return locator.locate("sql01.corp.local", None, AuthMethod.DEFAULT,
                          roots if roots is not None else [MEDIA_ROOT], sql_version(version))


class TestSelection:
    """Pure selection rules."""

    def test_excluded_subpaths(self):
        assert is_excluded("D:\\redist\\VisualStudioShell\\setup.exe")
        assert is_excluded("D:\\x64\\Setup\\sql_engine_core_inst_msi\\setup.exe")
        assert not is_excluded("D:\\setup.exe")

    def test_excluded_file_is_skipped(self):
        """A signature match in a support folder never wins."""
        shim = dict(SETUP_2017, path="\\\\fs01\\media\\SQL2017\\redist\\setup.exe")
        files = [SetupFileInfo.from_dict(shim), SetupFileInfo.from_dict(SETUP_2017)]

        assert select_setup_file(files, sql_version("2017")) == SETUP_2017["path"]

    def test_major_minor_must_match(self):
        files = [SetupFileInfo.from_dict(SETUP_2019)]
        assert select_setup_file(files, sql_version("2017")) is None

    def test_unparseable_version_never_matches(self):
        broken = dict(SETUP_2017, product_version="fourteen")
        assert select_setup_file([SetupFileInfo.from_dict(broken)], sql_version("2017")) is None

    def test_version_with_suffix(self):
        suffixed = dict(SETUP_2019, product_version="15.0.2000.5 ((SQLServer).190924-2033)")
        assert select_setup_file([SetupFileInfo.from_dict(suffixed)], sql_version("2019")) is not None

    def test_signature_required(self):
        other = dict(SETUP_2017, description="Contoso Installer", product_name="Contoso")
        assert select_setup_file([SetupFileInfo.from_dict(other)], sql_version("2017")) is None

    def test_first_match_wins(self):
        second = dict(SETUP_2017, path="\\\\fs01\\backup\\setup.exe")
        files = [SetupFileInfo.from_dict(SETUP_2017), SetupFileInfo.from_dict(second)]
        assert select_setup_file(files, sql_version("2017")) == SETUP_2017["path"]


class TestSetupMediaLocator:
    """Test cases for SetupMediaLocator."""

    def test_found(self, executor):
        result = locate(executor)

        assert isinstance(result, Success)
        assert result.value == SETUP_2017["path"]
        command = executor.exec_remote.call_args.args[3]
        assert command.operation == RemoteOperation.LIST_SETUP_FILES
        assert command.data == {"roots": [MEDIA_ROOT]}

    def test_no_root_reachable(self):
        executor = make_executor({RemoteOperation.LIST_SETUP_FILES: media_listing(reachable=False)})
        result = locate(executor)

        assert isinstance(result, Failure)
        assert result.error.kind == MediaLookupError.NOT_FOUND

    def test_no_match(self):
        executor = make_executor({RemoteOperation.LIST_SETUP_FILES: media_listing(SETUP_2019)})
        result = locate(executor)

        assert isinstance(result, Failure)
        assert result.error.kind == MediaLookupError.NO_MATCH
        assert "SQL2017" in result.error.message

    def test_remote_failure_is_not_found(self):
        executor = make_executor({RemoteOperation.LIST_SETUP_FILES: failed("WinRM refused")})
        result = locate(executor)

        assert result.error.kind == MediaLookupError.NOT_FOUND
        assert "WinRM refused" in result.error.message

    def test_no_roots(self, executor):
        result = locate(executor, roots=[])

        assert result.error.kind == MediaLookupError.NOT_FOUND
        executor.exec_remote.assert_not_called()
