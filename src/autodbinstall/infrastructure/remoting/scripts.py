"""
Fixed catalog of PowerShell scripts executed on install targets.

Every script reads its input from ``$data``, a PSCustomObject rebuilt from
the JSON payload prepended by ``render_script``. Scripts write plain text
or compressed JSON to stdout and throw on error.
"""

from __future__ import annotations

import json
from typing import Any

PREAMBLE = """$ErrorActionPreference = 'Stop'
$ProgressPreference = 'SilentlyContinue'
$data = ConvertFrom-Json @'
{payload}
'@
"""

PING = """
Write-Output $env:COMPUTERNAME
"""

ENABLE_CREDSSP = """
if ($data.client) {
    Enable-WSManCredSSP -Role Server -Force | Out-Null
} else {
    Write-Output 'Local host; CredSSP server role not required'
    return
}
Write-Output 'CredSSP server role enabled'
"""

LIST_SETUP_FILES = """
$roots = @()
$files = @()
foreach ($root in $data.roots) {
    $reachable = Test-Path -LiteralPath $root
    $roots += [pscustomobject]@{ path = $root; reachable = [bool]$reachable }
    if (-not $reachable) { continue }
    Get-ChildItem -LiteralPath $root -Filter 'setup.exe' -Recurse -File -ErrorAction SilentlyContinue |
        ForEach-Object {
            $files += [pscustomobject]@{
                path            = $_.FullName
                description     = $_.VersionInfo.FileDescription
                product_name    = $_.VersionInfo.ProductName
                product_version = $_.VersionInfo.ProductVersion
            }
        }
}
[pscustomobject]@{ roots = @($roots); files = @($files) } | ConvertTo-Json -Depth 4 -Compress
"""

CPU_CORE_COUNT = """
$cores = (Get-CimInstance -ClassName Win32_Processor | Measure-Object -Property NumberOfCores -Sum).Sum
Write-Output $cores
"""

ENSURE_DOTNET35 = """
$feature = Get-WindowsFeature -Name NET-Framework-Core
if ($feature.Installed) {
    Write-Output 'NET-Framework-Core already installed'
    return
}
$params = @{ Name = 'NET-Framework-Core' }
if ($data.source) { $params.Source = $data.source }
$outcome = Install-WindowsFeature @params
if (-not $outcome.Success) {
    throw "Install-WindowsFeature NET-Framework-Core failed: $($outcome.ExitCode)"
}
Write-Output 'NET-Framework-Core installed'
"""

READ_SETUP_LOG = """
$root = Join-Path $env:ProgramFiles 'Microsoft SQL Server'
$path = Join-Path $root "$($data.version_folder)\\Setup Bootstrap\\Log\\Summary.txt"
Get-Content -LiteralPath $path -Raw
"""

REMOVE_FILE = """
if (Test-Path -LiteralPath $data.path) {
    Remove-Item -LiteralPath $data.path -Force
}
"""

# Executor-internal scripts

WRITE_CHUNK = """
$path = Join-Path $env:TEMP $data.name
$bytes = [Convert]::FromBase64String($data.content)
if ($data.append) {
    $stream = [IO.File]::Open($path, [IO.FileMode]::Append)
    try { $stream.Write($bytes, 0, $bytes.Length) } finally { $stream.Dispose() }
} else {
    [IO.File]::WriteAllBytes($path, $bytes)
}
Write-Output $path
"""

RUN_SETUP = """
$info = New-Object System.Diagnostics.ProcessStartInfo
$info.FileName = $data.path
$info.Arguments = @($data.arguments) -join ' '
$info.UseShellExecute = $false
$info.CreateNoWindow = $true
$process = [System.Diagnostics.Process]::Start($info)
try {
    if (-not $process.WaitForExit([int]$data.timeout_ms)) {
        try { $process.Kill() } catch { }
        Write-Output 'TIMEOUT'
        return
    }
    $process.WaitForExit()
    Write-Output ([string]$process.ExitCode)
} finally {
    $process.Dispose()
}
"""

REBOOT_PENDING = """
$pending = $false
$keys = @(
    'HKLM:\\SOFTWARE\\Microsoft\\Windows\\CurrentVersion\\Component Based Servicing\\RebootPending',
    'HKLM:\\SOFTWARE\\Microsoft\\Windows\\CurrentVersion\\WindowsUpdate\\Auto Update\\RebootRequired'
)
foreach ($key in $keys) {
    if (Test-Path -LiteralPath $key) { $pending = $true }
}
if ($data.check_rename) {
    $session = Get-ItemProperty -Path 'HKLM:\\SYSTEM\\CurrentControlSet\\Control\\Session Manager' `
        -Name PendingFileRenameOperations -ErrorAction SilentlyContinue
    if ($session.PendingFileRenameOperations) { $pending = $true }
}
if ($pending) { Write-Output 'True' } else { Write-Output 'False' }
"""

RESTART = """
Restart-Computer -Force
"""

GRANT_VOLUME_MAINTENANCE = """
$account = New-Object System.Security.Principal.NTAccount($data.account)
$sid = $account.Translate([System.Security.Principal.SecurityIdentifier]).Value
$export = [IO.Path]::GetTempFileName()
$database = [IO.Path]::GetTempFileName()
try {
    secedit /export /cfg $export /areas USER_RIGHTS | Out-Null
    $lines = Get-Content -LiteralPath $export
    $current = $lines | Where-Object { $_ -like 'SeManageVolumePrivilege*' } | Select-Object -First 1
    if ($current -and $current -like "*$sid*") {
        Write-Output 'Privilege already granted'
        return
    }
    if ($current) {
        $lines = $lines | ForEach-Object { if ($_ -eq $current) { "$current,*$sid" } else { $_ } }
    } else {
        $lines = $lines | ForEach-Object {
            $_
            if ($_ -eq '[Privilege Rights]') { "SeManageVolumePrivilege = *$sid" }
        }
    }
    Set-Content -LiteralPath $export -Value $lines -Encoding Unicode
    secedit /configure /db $database /cfg $export /areas USER_RIGHTS | Out-Null
    if ($LASTEXITCODE -ne 0) { throw "secedit exited with $LASTEXITCODE" }
    Write-Output 'Privilege granted'
} finally {
    Remove-Item -LiteralPath $export, $database -Force -ErrorAction SilentlyContinue
}
"""

SET_SERVICE_PORT = """
$names = Get-ItemProperty -Path 'HKLM:\\SOFTWARE\\Microsoft\\Microsoft SQL Server\\Instance Names\\SQL'
$instanceId = $names.($data.instance)
if (-not $instanceId) { throw "Instance $($data.instance) not found" }
$tcp = "HKLM:\\SOFTWARE\\Microsoft\\Microsoft SQL Server\\$instanceId\\MSSQLServer\\SuperSocketNetLib\\Tcp\\IPAll"
Set-ItemProperty -Path $tcp -Name TcpDynamicPorts -Value ''
Set-ItemProperty -Path $tcp -Name TcpPort -Value ([string]$data.port)
if ($data.instance -eq 'MSSQLSERVER') { $service = 'MSSQLSERVER' } else { $service = "MSSQL`$$($data.instance)" }
Restart-Service -Name $service -Force
Write-Output "Port set to $($data.port)"
"""

CATALOG: dict[str, str] = {
    "ping": PING,
    "enable_credssp": ENABLE_CREDSSP,
    "list_setup_files": LIST_SETUP_FILES,
    "cpu_core_count": CPU_CORE_COUNT,
    "ensure_dotnet35": ENSURE_DOTNET35,
    "read_setup_log": READ_SETUP_LOG,
    "remove_file": REMOVE_FILE,
    "write_chunk": WRITE_CHUNK,
    "run_setup": RUN_SETUP,
    "reboot_pending": REBOOT_PENDING,
    "restart": RESTART,
    "grant_volume_maintenance": GRANT_VOLUME_MAINTENANCE,
    "set_service_port": SET_SERVICE_PORT,
}


def render_script(name: str, data: dict[str, Any] | None = None) -> str:
    """
    Build the full script for a catalog entry.

    Raises:
        KeyError: If ``name`` is not in the catalog
    """
    body = CATALOG[name]
    # json.dumps output is a single line, so it cannot close the here-string
    return PREAMBLE.format(payload=json.dumps(data or {})) + body
