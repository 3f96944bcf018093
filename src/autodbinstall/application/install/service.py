"""
Installation service.

High-level API: resolve targets and version, then fan the per-host state
machine out across targets under the throttle.

Usage:
    service = InstallService(executor=WinRMRemoteExecutor(settings), settings=settings)
    request = InstallRequest(version="2019", media_paths=["\\\\fs\\media\\SQL2019"])
    for result in service.iter_install(["sql01", "sql02\\APP"], request):
        print(result.computer, result.success)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable, Iterator, Optional

from autodbinstall.application.install.auth_negotiator import AuthNegotiator
from autodbinstall.application.install.host_installer import HostInstaller
from autodbinstall.application.install.ports import BuildCatalog, NameResolver, RemoteExecutor
from autodbinstall.application.install.request import InstallRequest
from autodbinstall.application.install.run_state import RunDecisions
from autodbinstall.application.install.targets import SocketNameResolver, resolve_target
from autodbinstall.application.install.throttle import ThrottledRunner
from autodbinstall.domain.install.models import InstallResult, Target
from autodbinstall.domain.install.versions import StaticBuildCatalog, resolve_version
from autodbinstall.domain.results import Failure
from autodbinstall.domain.settings import InstallSettings
from autodbinstall.domain.targets import DEFAULT_INSTANCE

logger = logging.getLogger(__name__)


class InstallService:
    """Orchestrates SQL Server installation across many hosts."""

    def __init__(self, executor: RemoteExecutor, settings: Optional[InstallSettings] = None,
                 build_catalog: Optional[BuildCatalog] = None,
                 resolver: Optional[NameResolver] = None) -> None:
        self.executor = executor
        self.settings = settings or InstallSettings()
        self.build_catalog = build_catalog or StaticBuildCatalog()
        self.resolver = resolver or SocketNameResolver()

    def iter_install(self, targets: Iterable[str], request: InstallRequest,
                     throttle: Optional[int] = None,
                     confirm: Optional[Callable[[str], bool]] = None) -> Iterator[InstallResult]:
        """
        Install on every target, yielding results as they complete.

        Exactly one result is yielded per submitted target identifier.
        """
        version = resolve_version(request.version, self.build_catalog)
        if isinstance(version, Failure):
            logger.error(version.error)

        decisions = RunDecisions(confirm=confirm)
        installer = HostInstaller(
            executor=self.executor,
            request=request,
            version=version,
            settings=self.settings,
            decisions=decisions,
            negotiator=AuthNegotiator(self.executor, decisions),
        )

        default_instance = request.instance_name
        if default_instance and default_instance.upper() == DEFAULT_INSTANCE:
            default_instance = None

        resolved: list[Target] = []
        for target_id in targets:
            outcome = resolve_target(target_id, self.resolver, port=request.port,
                                     instance_name=default_instance)
            if isinstance(outcome, Failure):
                logger.error("Skipping %s: %s", target_id, outcome.error)
                yield self._failed_result(target_id, request, outcome.error)
                continue
            resolved.append(outcome.value)

        runner: ThrottledRunner[Target, InstallResult] = ThrottledRunner(
            work_fn=installer.run,
            key_fn=lambda target: target.key,
            on_error=lambda target, exc: self._failed_result(
                target.name, request, f"Unexpected failure: {exc}", target=target),
            limit=throttle or self.settings.throttle,
        )
        yield from runner.run(resolved)

    def install(self, targets: Iterable[str], request: InstallRequest,
                throttle: Optional[int] = None,
                confirm: Optional[Callable[[str], bool]] = None) -> list[InstallResult]:
        """Install on every target and return all results in completion order."""
        results = list(self.iter_install(targets, request, throttle=throttle, confirm=confirm))
        succeeded = sum(1 for r in results if r.success)
        logger.info("Installation finished: %d succeeded, %d failed", succeeded, len(results) - succeeded)
        return results

    @staticmethod
    def _failed_result(name: str, request: InstallRequest, note: str,
                       target: Optional[Target] = None) -> InstallResult:
        result = InstallResult(
            computer=target.name if target else name,
            instance_name=target.effective_instance if target else (request.instance_name or DEFAULT_INSTANCE),
            version=request.version,
            port=target.port if target else request.port,
            success=False,
            notes=[note],
        )
        result.finished_at = datetime.now()
        return result


def install_sql_server(targets: Iterable[str], request: InstallRequest, executor: RemoteExecutor,
                       settings: Optional[InstallSettings] = None, throttle: Optional[int] = None,
                       confirm: Optional[Callable[[str], bool]] = None,
                       build_catalog: Optional[BuildCatalog] = None,
                       resolver: Optional[NameResolver] = None) -> list[InstallResult]:
    """Functional entry point; see ``InstallService.install``."""
    service = InstallService(executor, settings=settings, build_catalog=build_catalog, resolver=resolver)
    return service.install(targets, request, throttle=throttle, confirm=confirm)
