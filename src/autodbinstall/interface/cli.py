"""
CLI entry point.

Thin typer wrapper: builds an ``InstallRequest`` from the command line,
runs the install service and prints a results table.
"""

import logging
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from autodbinstall import __version__
from autodbinstall.application.install import InstallRequest, InstallService
from autodbinstall.domain.credential import Credential, ServiceCredentials
from autodbinstall.domain.install.models import AuthMethod, AuthenticationMode, InstallResult
from autodbinstall.infrastructure.logging_config import setup_logging
from autodbinstall.infrastructure.remoting import WinRMRemoteExecutor
from autodbinstall.infrastructure.settings_loader import load_settings

logger = logging.getLogger(__name__)
console = Console()

app = typer.Typer(
    name="autodbinstall",
    help="Unattended SQL Server installation on one or many Windows hosts",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


def _credential(username: Optional[str], password: Optional[str], label: str) -> Optional[Credential]:
    if not username:
        return None
    if password is None:
        password = typer.prompt(f"Password for {label} ({username})", hide_input=True, default="",
                                show_default=False)
    return Credential(username=username, password=password)


def _parse_overrides(values: Optional[List[str]]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Expected KEY=VALUE, got {item!r}", param_hint="--set")
        overrides[key.strip()] = value
    return overrides


def render_results(results: List[InstallResult]) -> Table:
    """Summary table, one row per target."""
    table = Table(title="SQL Server Installation Results")
    table.add_column("Computer", style="cyan", no_wrap=True)
    table.add_column("Instance", style="blue")
    table.add_column("Version")
    table.add_column("Success")
    table.add_column("Restarted")
    table.add_column("Exit Code", justify="right")
    table.add_column("Notes", overflow="fold")

    for result in results:
        table.add_row(
            result.computer,
            result.instance_name,
            result.version,
            "[green]Yes[/green]" if result.success else "[red]No[/red]",
            "Yes" if result.restarted else "No",
            "" if result.exit_code is None else str(result.exit_code),
            "\n".join(result.notes),
        )
    return table


@app.command("install")
def install(
    targets: List[str] = typer.Argument(..., help="Hosts to install on: host, host\\instance, host,port"),
    version: str = typer.Option(..., "--version", "-v", help="SQL Server version, e.g. 2019"),
    features: Optional[List[str]] = typer.Option(
        None, "--feature", "-f", help="Feature or template (Default, All); repeatable"),
    media_paths: List[str] = typer.Option(
        ..., "--path", "-p", help="Folder searched for setup.exe; repeatable, searched in order"),
    instance_name: Optional[str] = typer.Option(None, "--instance", "-i", help="Instance name"),
    port: Optional[int] = typer.Option(None, "--port", help="Static TCP port to configure after install"),
    username: Optional[str] = typer.Option(None, "--username", "-u", help="Windows account for remoting"),
    password: Optional[str] = typer.Option(None, "--password", help="Password for --username (prompted if omitted)"),
    authentication: Optional[AuthMethod] = typer.Option(
        None, "--authentication", case_sensitive=False, help="Force a remoting protocol"),
    mixed_mode: bool = typer.Option(False, "--mixed-mode", help="Enable SQL authentication"),
    sa_password: Optional[str] = typer.Option(
        None, "--sa-password", help="sa password (generated in mixed mode when omitted)"),
    show_sa_password: bool = typer.Option(
        False, "--show-sa-password", help="Print generated sa passwords to the console"),
    engine_account: Optional[str] = typer.Option(None, "--engine-account", help="Database engine service account"),
    engine_password: Optional[str] = typer.Option(None, "--engine-password", help="Engine account password"),
    agent_account: Optional[str] = typer.Option(None, "--agent-account", help="SQL Agent service account"),
    agent_password: Optional[str] = typer.Option(None, "--agent-password", help="Agent account password"),
    admin_accounts: Optional[List[str]] = typer.Option(None, "--admin", help="sysadmin account; repeatable"),
    configuration_file: Optional[str] = typer.Option(None, "--configuration-file", help="Base ini file"),
    overrides: Optional[List[str]] = typer.Option(None, "--set", help="Configuration KEY=VALUE; repeatable"),
    save_configuration: Optional[str] = typer.Option(
        None, "--save-configuration", help="Folder receiving a copy of each generated ini"),
    instance_path: Optional[str] = typer.Option(None, "--instance-path"),
    data_path: Optional[str] = typer.Option(None, "--data-path"),
    log_path: Optional[str] = typer.Option(None, "--log-path"),
    temp_path: Optional[str] = typer.Option(None, "--temp-path"),
    backup_path: Optional[str] = typer.Option(None, "--backup-path"),
    update_source: Optional[str] = typer.Option(None, "--update-source", help="Folder with updates to slipstream"),
    dotnet_source: Optional[str] = typer.Option(None, "--dotnet-source", help="Offline source for .NET 3.5"),
    volume_maintenance: bool = typer.Option(
        False, "--volume-maintenance", help="Grant Perform Volume Maintenance Tasks to the engine account"),
    restart: bool = typer.Option(False, "--restart", help="Allow restarting targets before and after install"),
    no_pending_rename_check: bool = typer.Option(
        False, "--no-pending-rename-check", help="Ignore PendingFileRenameOperations"),
    throttle: Optional[int] = typer.Option(None, "--throttle", "-t", min=1, help="Concurrent targets"),
    settings_file: Optional[str] = typer.Option(None, "--settings", help="JSON settings file"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Write a debug log to this file"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug output on the console"),
    assume_yes: bool = typer.Option(False, "--yes", "-y", help="Accept the insecure protocol fallback"),
    non_interactive: bool = typer.Option(False, "--non-interactive", help="Never prompt; decline fallbacks"),
):
    """
    Install SQL Server on the given targets.

    Exits with code 1 when any target failed.
    """
    setup_logging(logging.DEBUG if verbose else logging.INFO, log_file)

    try:
        settings = load_settings(settings_file, required=settings_file is not None)
    except (FileNotFoundError, PermissionError, ValueError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2) from e

    request = InstallRequest(
        version=version,
        features=features or ["Default"],
        media_paths=media_paths,
        instance_name=instance_name,
        port=port,
        credential=_credential(username, password, "remoting"),
        authentication=authentication,
        authentication_mode=AuthenticationMode.MIXED if mixed_mode else AuthenticationMode.WINDOWS,
        service_credentials=ServiceCredentials(
            engine=_credential(engine_account, engine_password, "engine"),
            agent=_credential(agent_account, agent_password, "agent"),
            sa=Credential(username="sa", password=sa_password) if sa_password else None,
        ),
        admin_accounts=admin_accounts or [],
        configuration_file=configuration_file,
        configuration=_parse_overrides(overrides),
        save_configuration=save_configuration,
        instance_path=instance_path,
        data_path=data_path,
        log_path=log_path,
        temp_path=temp_path,
        backup_path=backup_path,
        update_source_path=update_source,
        dotnet_source_path=dotnet_source,
        perform_volume_maintenance_tasks=volume_maintenance,
        restart=restart,
        no_pending_rename_check=no_pending_rename_check,
    )

    if assume_yes:
        confirm = lambda message: True  # noqa: E731
    elif non_interactive:
        confirm = None
    else:
        confirm = lambda message: typer.confirm(message, default=False)  # noqa: E731

    executor = WinRMRemoteExecutor(settings)
    try:
        results = InstallService(executor, settings=settings).install(
            targets, request, throttle=throttle, confirm=confirm)
    finally:
        executor.close()

    console.print(render_results(results))
    failed = [r for r in results if not r.success]
    console.print(f"\n[blue]Summary: {len(results) - len(failed)}/{len(results)} targets installed successfully[/blue]")
    generated = [r for r in results if r.success and r.sa_credential] if mixed_mode and not sa_password else []
    if generated and show_sa_password:
        # Console only; generated passwords never go through logging
        for result in generated:
            console.print(f"[yellow]Generated sa password for {result.computer}: "
                          f"{result.sa_credential.get_password()}[/yellow]", highlight=False)
    elif generated:
        console.print(f"[yellow]An sa password was generated for {len(generated)} target(s) and is not shown. "
                      "Use --show-sa-password to print it or --sa-password to supply one.[/yellow]")
    if failed:
        raise typer.Exit(code=1)


@app.command("version")
def show_version():
    """Print the tool version."""
    typer.echo(f"autodbinstall {__version__}")


def main() -> int:
    """
    Main entry point for the AutoDBInstall CLI.

    Returns:
        int: Exit code (0 for success, non-zero for failure)
    """
    try:
        app()
        return 0
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 0
