"""Security posture: updates, SSH, accounts, permissions, network, malware, hardening."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator

from archcare.checks.base import (
    Check,
    CheckContext,
    Scan,
    control,
    info,
    judged,
    measured,
    presence,
    unknown,
    value_text,
)
from archcare.errors import ExternalFailure, ParseFailure, Unavailable
from archcare.sources import parsers
from archcare.sources.host import SUSPICIOUS_PORTS
from archcare.sources.variants import (
    FirewallState,
    PasswordAuth,
    RootLogin,
    ServiceState,
    Unrecognized,
    parse_variant,
)
from archcare.report.logfile import SECURITY
from archcare.rules.models import Band
from archcare.session.models import CheckResult, Metric

logger = logging.getLogger(__name__)

SSHD_CONFIG = "etc/ssh/sshd_config"
LOGIN_DEFS = "etc/login.defs"
DEFAULT_SSH_PORT = "22"
PASS_MAX_DAYS_LIMIT = 90
SECURE_UMASK = "027"
AIDE_DATABASES = ("var/lib/aide/aide.db.gz", "var/lib/aide/aide.db.new.gz")
HARDENING_SYSCTL = "etc/sysctl.d/99-security-hardening.conf"

# Values sshd uses when a directive is absent
SSHD_DEFAULTS = {
    "Port": DEFAULT_SSH_PORT,
    "PermitRootLogin": "prohibit-password",
    "PasswordAuthentication": "yes",
    "Protocol": "2",
}

_ROOT_LOGIN_MESSAGES = {
    RootLogin.NO: "Root SSH login disabled",
    RootLogin.YES: "Root SSH login enabled - SECURITY RISK",
    RootLogin.PROHIBIT_PASSWORD: "Root SSH login with key only (consider disabling completely)",
    RootLogin.WITHOUT_PASSWORD: "Root SSH login with key only (consider disabling completely)",
    RootLogin.FORCED_COMMANDS_ONLY: "Root SSH login limited to forced commands",
}

_PASSWORD_AUTH_MESSAGES = {
    PasswordAuth.NO: "SSH password authentication disabled (key-only)",
    PasswordAuth.YES: "SSH password authentication enabled (consider key-only)",
}


def security_updates(ctx: CheckContext) -> Iterator[CheckResult]:
    updates = ctx.reader.pending_updates()
    security = [u for u in updates if u.security_related]
    yield measured(
        "security-updates",
        f"Security-related updates ({len(updates)} pending in total)",
        Metric("security-updates", len(security)),
        ctx.rules.threshold("security-updates"),
        details=tuple(f"{u.name} {u.current} -> {u.available}" for u in security),
    )


def ssh(ctx: CheckContext) -> Iterator[CheckResult]:
    reader = ctx.reader
    if not reader.sysfs.exists(SSHD_CONFIG):
        yield info("ssh", "SSH server not configured or not installed")
        return
    if reader.service_state("sshd") is not ServiceState.ACTIVE:
        yield info("ssh", "SSH service is not running")
        return

    text = reader.sysfs.read_text(SSHD_CONFIG)

    def setting(key: str) -> str:
        value = parsers.directive(text, key)
        return value if value is not None else SSHD_DEFAULTS[key]

    port = setting("Port")
    if port == DEFAULT_SSH_PORT:
        message, kind = f"SSH running on default port {port} (consider changing)", "default"
    else:
        message, kind = f"SSH running on non-default port {port}", "custom"
    yield judged("ssh-port", message, kind, ctx.rules, metric=Metric("ssh-port", port))

    root_login = parse_variant(RootLogin, setting("PermitRootLogin"))
    yield judged(
        "ssh-root-login",
        _ROOT_LOGIN_MESSAGES.get(root_login, f"Root SSH login setting unclear: {value_text(root_login)}"),
        root_login,
        ctx.rules,
    )

    password_auth = parse_variant(PasswordAuth, setting("PasswordAuthentication"))
    yield judged(
        "ssh-password-auth",
        _PASSWORD_AUTH_MESSAGES.get(
            password_auth, f"SSH password authentication: {value_text(password_auth)}"
        ),
        password_auth,
        ctx.rules,
    )

    protocol = setting("Protocol")
    message = "SSH using protocol 2" if protocol == "2" else f"SSH protocol version {protocol} (should be 2)"
    yield judged("ssh-protocol", message, protocol, ctx.rules)


def _shadow(ctx: CheckContext) -> list[list[str]]:
    # Readable by root only; anyone else gets Unavailable and an unknown verdict
    return parsers.colon_records(ctx.reader.sysfs.read_text("etc/shadow"), 2)


def empty_passwords(ctx: CheckContext) -> Iterator[CheckResult]:
    users = [fields[0] for fields in _shadow(ctx) if fields[1] == ""]
    yield presence(
        "empty-passwords",
        users,
        ctx.rules,
        clean="No users with empty passwords",
        found="Users with empty passwords",
        severity="finding-critical",
    )


def uid_zero(ctx: CheckContext) -> Iterator[CheckResult]:
    records = parsers.colon_records(ctx.reader.sysfs.read_text("etc/passwd"), 3)
    users = [fields[0] for fields in records if fields[2] == "0" and fields[0] != "root"]
    yield presence(
        "uid-zero",
        users,
        ctx.rules,
        clean="Only root has UID 0",
        found="Non-root users with UID 0",
        severity="finding-critical",
    )


def password_aging(ctx: CheckContext) -> Iterator[CheckResult]:
    """Accounts with a usable password hash but no maximum password age."""
    users = []
    for fields in _shadow(ctx):
        hashed = fields[1]
        if not hashed or hashed.startswith(("!", "*")):
            continue
        max_days = fields[4] if len(fields) > 4 else ""
        if max_days in ("", "99999"):
            users.append(fields[0])
    yield presence(
        "password-aging",
        users,
        ctx.rules,
        clean="All password accounts have password aging",
        found="Users without password aging",
    )


def _file_mode(ctx: CheckContext, name: str, path: str, allowed: tuple[int, ...]) -> CheckResult:
    mode = ctx.reader.sysfs.file_mode(path)
    text = f"{mode:o}"
    if mode in allowed:
        message, state = f"/{path} permissions: {text} (correct)", "correct"
    else:
        expected = " or ".join(f"{m:o}" for m in allowed)
        message, state = f"/{path} permissions: {text} (should be {expected})", "incorrect"
    return judged(name, message, state, ctx.rules, rule="file-mode", metric=Metric(f"/{path}", text))


def file_permissions(ctx: CheckContext) -> Iterator[CheckResult]:
    for name, path, allowed in (
        ("passwd-mode", "etc/passwd", (0o644,)),
        ("shadow-mode", "etc/shadow", (0o640, 0o600)),
    ):
        try:
            yield _file_mode(ctx, name, path, allowed)
        except Unavailable as e:
            yield unknown(name, f"/{path} permissions", e)


def world_writable(ctx: CheckContext) -> Iterator[CheckResult]:
    yield presence(
        "world-writable",
        ctx.reader.world_writable_files(),
        ctx.rules,
        clean="No world-writable system files found",
        found="World-writable system files",
    )


def suid_files(ctx: CheckContext) -> Iterator[CheckResult]:
    yield measured("suid-files", "SUID/SGID files", ctx.reader.suid_file_count(), ctx.rules.threshold("suid-files"))


def listening_ports(ctx: CheckContext) -> Iterator[CheckResult]:
    ports = ctx.reader.listening_ports()
    yield info("listening-ports", f"Open listening ports: {len(ports)}", Metric("listening-ports", len(ports)))
    suspicious = sorted(ports & SUSPICIOUS_PORTS)
    yield presence(
        "suspicious-ports",
        [f"port {port}" for port in suspicious],
        ctx.rules,
        clean="No suspicious listening ports",
        found="Potentially suspicious listening ports",
    )


def firewall(ctx: CheckContext) -> Iterator[CheckResult]:
    state, backend = ctx.reader.firewall_state()
    if state is FirewallState.ACTIVE:
        message = f"{backend} firewall is active"
    elif state is FirewallState.MISSING:
        message = "No firewall detected (firewalld, ufw or iptables)"
    elif backend == "iptables":
        message = "Few or no iptables rules configured"
    elif isinstance(state, Unrecognized):
        message = f"{backend} firewall status: {state}"
    else:
        message = f"{backend} firewall is inactive"
    yield judged("firewall", message, state, ctx.rules, metric=Metric(backend or "firewall", state))


def rootkits(ctx: CheckContext) -> Iterator[CheckResult]:
    reader = ctx.reader
    has_rkhunter = reader.runner.available("rkhunter")
    has_chkrootkit = reader.runner.available("chkrootkit")
    if has_rkhunter:
        yield presence(
            "rkhunter",
            reader.rkhunter_warnings(),
            ctx.rules,
            clean="rkhunter: no rootkits detected",
            found="rkhunter found potential issues",
        )
    if has_chkrootkit:
        yield presence(
            "chkrootkit",
            reader.chkrootkit_infections(),
            ctx.rules,
            clean="chkrootkit: no infections detected",
            found="chkrootkit found infections",
            severity="finding-critical",
        )
    if not (has_rkhunter or has_chkrootkit):
        yield info("rootkits", "Install rkhunter and chkrootkit for comprehensive rootkit scanning")


def miners(ctx: CheckContext) -> Iterator[CheckResult]:
    yield presence(
        "miner-processes",
        ctx.reader.miner_processes(),
        ctx.rules,
        clean="No suspicious mining processes detected",
        found="Suspicious mining processes detected",
        severity="finding-critical",
    )


def external_connections(ctx: CheckContext) -> Iterator[CheckResult]:
    yield measured(
        "external-connections",
        "External connections",
        ctx.reader.external_connections(),
        ctx.rules.threshold("external-connections"),
    )


def package_integrity(ctx: CheckContext) -> Iterator[CheckResult]:
    yield presence(
        "package-integrity",
        ctx.reader.integrity_problems(),
        ctx.rules,
        clean="All system packages have intact files",
        found="Packages with modified or missing files",
    )


def core_dumps(ctx: CheckContext) -> Iterator[CheckResult]:
    yield presence(
        "core-dumps",
        ctx.reader.core_dumps(),
        ctx.rules,
        clean="No core dump files found",
        found="Core dump files found (investigate crashes)",
    )


def failed_logins(ctx: CheckContext) -> Iterator[CheckResult]:
    failures = ctx.reader.auth_failures()
    yield measured(
        "failed-logins",
        "Failed login attempts in the last 24h",
        Metric("failed-logins", len(failures)),
        ctx.rules.threshold("failed-logins"),
        details=tuple(failures[-3:]),
    )


def hardening(ctx: CheckContext) -> Iterator[CheckResult]:
    """The hardening verification controls, one scored result each."""
    reader = ctx.reader
    runner = reader.runner
    sysfs = reader.sysfs

    def login_defs(key: str) -> str | None:
        return parsers.directive(sysfs.read_text(LOGIN_DEFS), key)

    def active(unit: str) -> bool:
        return reader.service_state(unit) is ServiceState.ACTIVE

    def max_days_within_limit() -> bool:
        value = login_defs("PASS_MAX_DAYS")
        return value is not None and value.isdigit() and int(value) <= PASS_MAX_DAYS_LIMIT

    def ssh_service_removed() -> bool:
        if not runner.available("firewall-cmd"):
            return True
        return "ssh" not in reader.firewalld_services()

    controls: list[tuple[str, Callable[[], bool], str, str]] = [
        ("dmesg-restrict", lambda: reader.sysctl("kernel.dmesg_restrict") == "1",
         "Kernel hardening: dmesg_restrict enabled",
         "Kernel hardening: dmesg_restrict not enabled"),
        ("password-max-age", max_days_within_limit,
         f"Password policy: maximum age configured ({PASS_MAX_DAYS_LIMIT} days)",
         "Password policy: maximum age not configured"),
        ("auditd", lambda: active("auditd"),
         "Security logging: auditd is running",
         "Security logging: auditd not running"),
        ("aide", lambda: runner.available("aide"),
         "File integrity: AIDE installed",
         "File integrity: AIDE not installed"),
        ("aide-database", lambda: any(sysfs.exists(db) for db in AIDE_DATABASES),
         "File integrity: AIDE database exists",
         "File integrity: AIDE database not initialized"),
        ("maldet", lambda: runner.available("maldet"),
         "Malware detection: maldet installed",
         "Malware detection: maldet not installed"),
        ("fail2ban", lambda: active("fail2ban"),
         "Intrusion prevention: fail2ban running",
         "Intrusion prevention: fail2ban not running"),
        ("apparmor", lambda: runner.available("aa-status") and active("apparmor"),
         "Mandatory access control: AppArmor running",
         "Mandatory access control: AppArmor not active"),
        ("firewall-ssh", ssh_service_removed,
         "Firewall: SSH service removed",
         "Firewall: SSH service still enabled (remove it if unused)"),
        ("umask", lambda: login_defs("UMASK") == SECURE_UMASK,
         f"File permissions: secure umask ({SECURE_UMASK}) configured",
         "File permissions: secure umask not configured"),
        ("sysctl-hardening", lambda: sysfs.exists(HARDENING_SYSCTL),
         "Network security: kernel hardening applied",
         "Network security: kernel hardening not applied"),
        ("kernel-current", lambda: reader.installed_kernel() == reader.running_kernel(),
         "System state: kernel up to date",
         "System state: reboot needed for kernel update"),
    ]
    for name, read_state, good, bad in controls:
        try:
            enabled = read_state()
        except (Unavailable, ParseFailure, ExternalFailure) as e:
            yield unknown(name, good.split(":")[0], e)
            continue
        yield control(name, enabled, good, bad, ctx.rules)


SCAN = Scan(
    name="security",
    title="Security Scan",
    checks=(
        Check("security-updates", "Checking for security updates", security_updates),
        Check("ssh", "Checking SSH security configuration", ssh),
        Check("empty-passwords", "Checking for empty passwords", empty_passwords),
        Check("uid-zero", "Checking for extra UID 0 accounts", uid_zero),
        Check("password-aging", "Checking password aging", password_aging),
        Check("file-permissions", "Checking critical file permissions", file_permissions),
        Check("world-writable", "Checking for world-writable system files", world_writable),
        Check("suid-files", "Checking SUID/SGID files", suid_files),
        Check("listening-ports", "Checking listening ports", listening_ports),
        Check("firewall", "Checking firewall status", firewall),
        Check("rootkits", "Checking for rootkits", rootkits),
        Check("miner-processes", "Checking for suspicious processes", miners),
        Check("external-connections", "Checking external connections", external_connections),
        Check("package-integrity", "Checking package integrity", package_integrity),
        Check("core-dumps", "Checking for core dumps", core_dumps),
        Check("failed-logins", "Checking system logs for failed logins", failed_logins),
        Check("hardening", "Verifying security hardening", hardening),
    ),
    band_messages={
        Band.EXCELLENT: "Excellent security posture!",
        Band.GOOD: "Good security posture with room for improvement",
        Band.MODERATE: "Moderate security - additional hardening recommended",
        Band.POOR: "Poor security posture - immediate hardening required",
    },
    log_category=SECURITY,
)
