"""
Per-host install state machine.

ReadyCheck -> PendingRebootCheck -> ProtocolNegotiated -> MediaLocated ->
ConfigBuilt -> ConfigStaged -> Executed -> LogCaptured -> PostInstall ->
RebootEvaluated -> Done.

Each step returns a railway result. ``Failure(recoverable=True)`` becomes a
note and the machine moves on; ``Failure(recoverable=False)`` moves straight
to Failed (or Blocked). Every path ends with a populated ``InstallResult`` and
with the staged configuration file removed locally and remotely.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from autodbinstall.application.install.auth_negotiator import AuthNegotiator
from autodbinstall.application.install.config_builder import (
    BuiltConfiguration,
    ConfigurationBuilder,
    default_service_account,
)
from autodbinstall.application.install.media_locator import SetupMediaLocator
from autodbinstall.application.install.ports import RemoteCommand, RemoteExecutor, RemoteOperation
from autodbinstall.application.install.request import InstallRequest
from autodbinstall.application.install.run_state import RunDecisions
from autodbinstall.domain.install.models import (
    EXIT_REBOOT_REQUIRED,
    EXIT_SUCCESS,
    ActionPlanEntry,
    AuthMethod,
    InstallResult,
    SetupArgument,
    Target,
    mask_arguments,
    render_arguments,
)
from autodbinstall.domain.install.versions import OPTIONS_SECTION, SqlVersion
from autodbinstall.domain.results import Failure, Result, Success, fatal, recoverable
from autodbinstall.domain.settings import InstallSettings
from autodbinstall.infrastructure.ini_file import write_ini

logger = logging.getLogger(__name__)


class HostInstallState(Enum):
    READY_CHECK = "ready_check"
    PENDING_REBOOT_CHECK = "pending_reboot_check"
    PROTOCOL_NEGOTIATED = "protocol_negotiated"
    MEDIA_LOCATED = "media_located"
    CONFIG_BUILT = "config_built"
    CONFIG_STAGED = "config_staged"
    EXECUTED = "executed"
    LOG_CAPTURED = "log_captured"
    POST_INSTALL = "post_install"
    REBOOT_EVALUATED = "reboot_evaluated"
    DONE = "done"
    FAILED = "failed"
    BLOCKED = "blocked"


class HostLogAdapter(logging.LoggerAdapter):
    """Prefixes every line with the target name."""

    def process(self, msg, kwargs):
        return f"[{self.extra['host']}] {msg}", kwargs


@dataclass
class HostContext:
    """Mutable state of one target while it moves through the machine."""

    target: Target
    result: InstallResult
    log: HostLogAdapter
    version: Optional[SqlVersion] = None
    protocol: Optional[AuthMethod] = None
    installer_path: Optional[str] = None
    built: Optional[BuiltConfiguration] = None
    plan: Optional[ActionPlanEntry] = None
    reboot_pending: bool = False
    state: HostInstallState = HostInstallState.READY_CHECK
    history: list[HostInstallState] = field(default_factory=list)

    def move(self, state: HostInstallState) -> None:
        self.history.append(state)
        self.state = state

    def note(self, message: str) -> None:
        self.log.warning(message)
        self.result.add_note(message)


class HostInstaller:
    """Drives one target from pre-flight checks to a final result."""

    def __init__(self, executor: RemoteExecutor, request: InstallRequest,
                 version: Result[SqlVersion, str], settings: InstallSettings,
                 decisions: RunDecisions, negotiator: Optional[AuthNegotiator] = None,
                 locator: Optional[SetupMediaLocator] = None,
                 builder: Optional[ConfigurationBuilder] = None) -> None:
        self.executor = executor
        self.request = request
        self.version = version
        self.settings = settings
        self.decisions = decisions
        self.negotiator = negotiator or AuthNegotiator(executor, decisions)
        self.locator = locator or SetupMediaLocator(executor)
        self.builder = builder or ConfigurationBuilder(executor, settings)

    def run(self, target: Target) -> InstallResult:
        """Install on ``target``; never raises."""
        result = InstallResult(
            computer=target.name,
            instance_name=target.effective_instance,
            version=self.request.version,
            port=target.port,
        )
        ctx = HostContext(target=target, result=result,
                          log=HostLogAdapter(logger, {"host": target.name}))

        steps: list[tuple[HostInstallState, Callable[[HostContext], Result[None, str]]]] = [
            (HostInstallState.READY_CHECK, self._ready_check),
            (HostInstallState.PENDING_REBOOT_CHECK, self._pending_reboot_check),
            (HostInstallState.PROTOCOL_NEGOTIATED, self._negotiate),
            (HostInstallState.MEDIA_LOCATED, self._locate_media),
            (HostInstallState.CONFIG_BUILT, self._build_configuration),
            (HostInstallState.CONFIG_STAGED, self._stage_configuration),
            (HostInstallState.EXECUTED, self._execute),
            (HostInstallState.LOG_CAPTURED, self._capture_log),
            (HostInstallState.POST_INSTALL, self._post_install),
            (HostInstallState.REBOOT_EVALUATED, self._evaluate_reboot),
        ]

        try:
            for state, step in steps:
                outcome = step(ctx)
                if isinstance(outcome, Failure):
                    ctx.note(outcome.error)
                    if not outcome.recoverable:
                        blocked = bool(outcome.context and outcome.context.get("blocked"))
                        ctx.move(HostInstallState.BLOCKED if blocked else HostInstallState.FAILED)
                        result.success = False
                        return result
                ctx.move(state)
            ctx.move(HostInstallState.DONE)
        except Exception as exc:  # pylint: disable=broad-except
            ctx.log.exception("Unexpected failure")
            ctx.move(HostInstallState.FAILED)
            result.success = False
            result.add_note(f"Unexpected failure on {target.name}: {exc}")
        finally:
            self._cleanup(ctx)
            result.finished_at = datetime.now()
            ctx.log.info("Finished in state %s (success=%s)", ctx.state.value, result.success)
        return result

    # ------------------------------------------------------------------
    # Pre-flight
    # ------------------------------------------------------------------

    def _ready_check(self, ctx: HostContext) -> Result[None, str]:
        if isinstance(self.version, Failure):
            return fatal(self.version.error)
        ctx.version = self.version.value
        ctx.result.build = str(ctx.version.build)

        unc_media = any(p.startswith("\\\\") for p in self.request.media_paths)
        if not ctx.target.is_local and self.request.credential is None and unc_media:
            if self.decisions.claim_credential_warning():
                logger.warning("Explicit credentials might be required when installing on remote hosts "
                               "from a network share (double hop)")
        return Success(None)

    def _pending_reboot_check(self, ctx: HostContext) -> Result[None, str]:
        pending = self.executor.is_reboot_pending(
            ctx.target.fqdn, self.request.credential,
            check_pending_rename=not self.request.no_pending_rename_check,
        )
        if pending and (not self.request.restart or ctx.target.is_local):
            return fatal(f"{ctx.target.name} is pending a reboot. Reboot the computer before proceeding.",
                         blocked=True)
        ctx.reboot_pending = pending
        if pending:
            ctx.log.info("Reboot pending; the host will be restarted before installation")
        return Success(None)

    def _negotiate(self, ctx: HostContext) -> Result[None, str]:
        outcome = self.negotiator.negotiate(ctx.target, self.request.credential,
                                            self.request.authentication, note=ctx.note)
        if isinstance(outcome, Failure):
            return fatal(outcome.error)
        ctx.protocol = outcome.value.protocol
        ctx.result.protocol = ctx.protocol.value
        return Success(None)

    def _locate_media(self, ctx: HostContext) -> Result[None, str]:
        outcome = self.locator.locate(ctx.target.fqdn, self.request.credential, ctx.protocol,
                                      list(self.request.media_paths), ctx.version)
        if isinstance(outcome, Failure):
            return fatal(outcome.error.message)
        ctx.installer_path = outcome.value
        ctx.result.installer = outcome.value
        return Success(None)

    def _build_configuration(self, ctx: HostContext) -> Result[None, str]:
        outcome = self.builder.build(ctx.target, ctx.version, self.request, ctx.protocol, note=ctx.note)
        if isinstance(outcome, Failure):
            return fatal(outcome.error)
        ctx.built = outcome.value
        ctx.result.configuration = ctx.built.configuration.to_dict()
        ctx.result.sa_credential = ctx.built.sa_credential
        return Success(None)

    def _stage_configuration(self, ctx: HostContext) -> Result[None, str]:
        """Write the ini locally, keep a copy if asked, push it to the host."""
        staging = self.settings.staging_directory
        if staging:
            Path(staging).mkdir(parents=True, exist_ok=True)
        handle, local_path = tempfile.mkstemp(prefix=f"Configuration_{ctx.target.name}_",
                                              suffix=".ini", dir=staging)
        os.close(handle)

        ctx.plan = ActionPlanEntry(
            target=ctx.target,
            installer_path=ctx.installer_path,
            instance_name=ctx.target.effective_instance,
            port=ctx.target.port,
            config_path=local_path,
            reboot_pending=ctx.reboot_pending,
        )
        write_ini(local_path, ctx.built.configuration)

        if self.request.save_configuration:
            self._save_copy(ctx)

        if ctx.target.is_local:
            ctx.plan.remote_config_path = local_path
        else:
            copied = self.executor.copy_to_remote(local_path, ctx.target.fqdn, self.request.credential)
            if not copied.success:
                return fatal(f"Failed to copy configuration file to {ctx.target.fqdn}: {copied.message}")
            ctx.plan.remote_config_path = copied.stdout.strip()

        arguments: list[SetupArgument] = [f'/ConfigurationFile="{ctx.plan.remote_config_path}"']
        if ctx.built.configuration.section == OPTIONS_SECTION:
            arguments.append("/IACCEPTSQLSERVERLICENSETERMS")
        arguments.extend(ctx.built.secret_arguments)
        ctx.plan.arguments = arguments
        return Success(None)

    def _save_copy(self, ctx: HostContext) -> None:
        folder = Path(self.request.save_configuration)
        destination = folder / f"Configuration_{ctx.target.name}_{ctx.target.effective_instance}.ini"
        try:
            write_ini(destination, ctx.built.configuration)
            ctx.result.configuration_path = str(destination)
            ctx.log.info("Configuration saved to %s", destination)
        except OSError as exc:
            ctx.note(f"Failed to save configuration file to {destination}: {exc}")

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _execute(self, ctx: HostContext) -> Result[None, str]:
        plan = ctx.plan
        if plan.reboot_pending:
            restarted = self.executor.reboot_and_wait(ctx.target.fqdn, self.request.credential)
            if not restarted.success:
                return fatal(f"Restart of {ctx.target.fqdn} before installation failed: {restarted.message}")
            ctx.result.restarted = True

        ctx.log.info("Running %s %s", plan.installer_path, mask_arguments(plan.arguments))
        outcome = self.executor.run_installer(ctx.target.fqdn, self.request.credential, ctx.protocol,
                                              plan.installer_path, render_arguments(plan.arguments))
        ctx.result.exit_code = outcome.exit_code
        if outcome.timed_out:
            ctx.result.success = False
            return recoverable(f"Setup on {ctx.target.fqdn} timed out after "
                               f"{self.settings.timeouts.installer_timeout} seconds")
        if outcome.error:
            ctx.result.success = False
            return recoverable(f"Setup on {ctx.target.fqdn} failed to run: {outcome.error}")

        ctx.result.success = outcome.exit_code in (EXIT_SUCCESS, EXIT_REBOOT_REQUIRED)
        if outcome.exit_code == EXIT_REBOOT_REQUIRED:
            return recoverable("Setup completed with exit code 3010: a reboot is required")
        return Success(None)

    def _capture_log(self, ctx: HostContext) -> Result[None, str]:
        command = RemoteCommand(RemoteOperation.READ_SETUP_LOG,
                                {"version_folder": ctx.version.setup_folder_number})
        read = self.executor.exec_remote(ctx.target.fqdn, self.request.credential, ctx.protocol, command)
        if not read.success:
            return recoverable(f"Failed to retrieve the setup log from {ctx.target.fqdn}: {read.message}")
        ctx.result.log = read.stdout
        return Success(None)

    def _post_install(self, ctx: HostContext) -> Result[None, str]:
        if not ctx.result.success:
            code = ctx.result.exit_code
            return fatal(f"Installation failed with exit code {code}. Expand 'log' property to find more details.")

        if ctx.built.grant_volume_maintenance:
            engine = self.request.service_credentials.engine
            account = engine.username if engine else default_service_account(ctx.target.effective_instance)
            granted = self.executor.grant_volume_maintenance(ctx.target.fqdn, self.request.credential, account)
            if not granted.success:
                ctx.note(f"Failed to grant Perform Volume Maintenance Tasks to {account}: {granted.message}")

        if ctx.target.port:
            changed = self.executor.set_service_port(ctx.target.fqdn, ctx.target.effective_instance,
                                                     self.request.credential, ctx.target.port)
            if not changed.success:
                ctx.note(f"Failed to set port {ctx.target.port} on {ctx.target.display_name}: {changed.message}")
        return Success(None)

    def _evaluate_reboot(self, ctx: HostContext) -> Result[None, str]:
        needed = ctx.result.exit_code == EXIT_REBOOT_REQUIRED or self.executor.is_reboot_pending(
            ctx.target.fqdn, self.request.credential,
            check_pending_rename=not self.request.no_pending_rename_check,
        )
        if not needed:
            return Success(None)

        if self.request.restart and not ctx.target.is_local:
            ctx.log.info("Restarting to finish the installation")
            restarted = self.executor.reboot_and_wait(ctx.target.fqdn, self.request.credential)
            if not restarted.success:
                return fatal(f"Restart of {ctx.target.fqdn} failed: {restarted.message}")
            ctx.result.restarted = True
            return Success(None)

        return recoverable(f"Restart is required for computer {ctx.target.name} to finish the "
                           f"installation of SQL Server version {self.request.version}")

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def _cleanup(self, ctx: HostContext) -> None:
        """Remove the staged configuration file from both ends."""
        plan = ctx.plan
        if plan is None:
            return

        if plan.remote_config_path and plan.remote_config_path != plan.config_path:
            command = RemoteCommand(RemoteOperation.REMOVE_FILE, {"path": plan.remote_config_path})
            try:
                removed = self.executor.exec_remote(ctx.target.fqdn, self.request.credential,
                                                    ctx.protocol or AuthMethod.DEFAULT, command)
                if not removed.success:
                    ctx.note(f"Failed to remove {plan.remote_config_path} from {ctx.target.fqdn}: "
                             f"{removed.message}")
            except Exception as exc:  # pylint: disable=broad-except
                ctx.note(f"Failed to remove {plan.remote_config_path} from {ctx.target.fqdn}: {exc}")

        try:
            os.remove(plan.config_path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            ctx.note(f"Failed to remove local configuration file {plan.config_path}: {exc}")
