"""Tests for the security scan checks."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from archcare.checks import security
from archcare.checks.base import CheckContext
from archcare.errors import Unavailable
from archcare.rules.models import Verdict

SHADOW = """\
root:$6$salt$hash:19800:0:99999:7:::
guest::19800:0:99999:7:::
bin:!*:19800::::::
alice:$y$j9T$hash:19800:0:90:7:::
"""


def _by_name(results):
    return {r.name: r for r in results}


def test_security_updates(check_context: CheckContext, fake_runner):
    fake_runner.respond("pacman", "openssl 3.3.0-1 -> 3.3.1-1\nvim 9.1.0-1 -> 9.1.1-1\n")
    (result,) = security.security_updates(check_context)
    assert result.verdict is Verdict.WARNING
    assert result.message.startswith("Security-related updates (2 pending in total): 1")
    assert result.details == ("openssl 3.3.0-1 -> 3.3.1-1",)


def test_ssh_not_installed(check_context: CheckContext):
    (result,) = security.ssh(check_context)
    assert result.message == "SSH server not configured or not installed"
    assert not result.scoreable


def test_ssh_not_running(check_context: CheckContext, fake_runner, write_file):
    write_file("etc/ssh/sshd_config", "Port 22\n")
    fake_runner.respond(("systemctl", "is-active", "sshd"), "inactive\n", exit_code=3)
    (result,) = security.ssh(check_context)
    assert result.message == "SSH service is not running"


def test_ssh_settings_with_defaults(check_context: CheckContext, fake_runner, write_file):
    write_file("etc/ssh/sshd_config", "# Port 2222\nPermitRootLogin yes\n")
    fake_runner.respond(("systemctl", "is-active", "sshd"), "active\n")
    results = _by_name(security.ssh(check_context))
    assert results["ssh-port"].verdict is Verdict.WARNING
    assert results["ssh-port"].message == "SSH running on default port 22 (consider changing)"
    assert results["ssh-root-login"].verdict is Verdict.CRITICAL
    assert results["ssh-password-auth"].verdict is Verdict.WARNING
    assert results["ssh-protocol"].verdict is Verdict.NORMAL


def test_ssh_hardened(check_context: CheckContext, fake_runner, write_file):
    write_file(
        "etc/ssh/sshd_config",
        "Port 2200\nPermitRootLogin no\nPasswordAuthentication no\n",
    )
    fake_runner.respond(("systemctl", "is-active", "sshd"), "active\n")
    results = list(security.ssh(check_context))
    assert all(r.verdict is Verdict.NORMAL for r in results)
    assert len(results) == 4


def test_accounts_from_shadow(check_context: CheckContext, write_file):
    write_file("etc/shadow", SHADOW)
    (empty,) = security.empty_passwords(check_context)
    assert empty.verdict is Verdict.CRITICAL
    assert empty.details == ("guest",)

    (aging,) = security.password_aging(check_context)
    assert aging.verdict is Verdict.WARNING
    assert aging.details == ("root",)


def test_unreadable_shadow_is_unavailable(check_context: CheckContext):
    with pytest.raises(Unavailable):
        list(security.empty_passwords(check_context))


def test_uid_zero(check_context: CheckContext, write_file):
    write_file("etc/passwd", "root:x:0:0::/root:/bin/bash\ntoor:x:0:0::/root:/bin/sh\nbob:x:1000:1000::/home/bob:/bin/zsh\n")
    (result,) = security.uid_zero(check_context)
    assert result.verdict is Verdict.CRITICAL
    assert result.message == "Non-root users with UID 0: 1"


def test_file_permissions(check_context: CheckContext, write_file):
    write_file("etc/passwd", "root:x:0:0::/root:/bin/bash\n").chmod(0o644)
    write_file("etc/shadow", SHADOW).chmod(0o644)
    passwd, shadow = security.file_permissions(check_context)
    assert passwd.verdict is Verdict.NORMAL
    assert shadow.verdict is Verdict.WARNING
    assert shadow.message == "/etc/shadow permissions: 644 (should be 640 or 600)"


def test_file_permissions_missing_file(check_context: CheckContext):
    results = list(security.file_permissions(check_context))
    assert [r.verdict for r in results] == [Verdict.UNKNOWN, Verdict.UNKNOWN]


@patch("archcare.sources.readers.host.listening_ports", return_value={22, 631, 8080})
def test_listening_ports(mock_ports: MagicMock, check_context: CheckContext):
    count, suspicious = security.listening_ports(check_context)
    assert count.message == "Open listening ports: 3"
    assert not count.scoreable
    assert suspicious.verdict is Verdict.WARNING
    assert suspicious.details == ("port 8080",)


def test_firewall_missing(check_context: CheckContext, fake_runner):
    fake_runner.missing.update({"firewall-cmd", "ufw", "iptables"})
    (result,) = security.firewall(check_context)
    assert result.verdict is Verdict.WARNING
    assert result.message == "No firewall detected (firewalld, ufw or iptables)"


def test_firewall_active(check_context: CheckContext, fake_runner):
    fake_runner.missing.add("firewall-cmd")
    fake_runner.respond("ufw", "Status: active\n")
    (result,) = security.firewall(check_context)
    assert result.verdict is Verdict.NORMAL
    assert result.message == "ufw firewall is active"


def test_rootkit_tools_missing(check_context: CheckContext, fake_runner):
    fake_runner.missing.update({"rkhunter", "chkrootkit"})
    (result,) = security.rootkits(check_context)
    assert not result.scoreable


def test_chkrootkit_infection_is_critical(check_context: CheckContext, fake_runner):
    fake_runner.missing.add("rkhunter")
    fake_runner.respond("chkrootkit", "Checking `ls'... not infected\nChecking `bindshell'... INFECTED (PORTS:  465)\n")
    (result,) = security.rootkits(check_context)
    assert result.name == "chkrootkit"
    assert result.verdict is Verdict.CRITICAL


def test_failed_logins(check_context: CheckContext, fake_runner):
    lines = [f"sshd[{i}]: pam_unix(sshd:auth): authentication failure; rhost=10.0.0.{i}" for i in range(7)]
    fake_runner.respond("journalctl", "\n".join(lines) + "\n")
    (result,) = security.failed_logins(check_context)
    assert result.verdict is Verdict.WARNING
    assert len(result.details) == 3
    assert result.details[-1].endswith("rhost=10.0.0.6")


@patch("archcare.sources.readers.platform.release", return_value="6.9.7-arch1-1")
def test_hardening_controls(mock_release: MagicMock, check_context: CheckContext, fake_runner, write_file):
    fake_runner.missing.update({"maldet", "firewall-cmd"})
    fake_runner.respond(("sysctl", "-n", "kernel.dmesg_restrict"), "1\n")
    fake_runner.respond(("systemctl", "is-active", "auditd"), "active\n")
    fake_runner.respond(("systemctl", "is-active", "fail2ban"), "inactive\n", exit_code=3)
    fake_runner.respond(("systemctl", "is-active", "apparmor"), "active\n")
    fake_runner.respond(("pacman", "-Q", "linux"), "linux 6.9.7.arch1-1\n")
    write_file("etc/login.defs", "PASS_MAX_DAYS\t90\nUMASK\t\t022\n")
    write_file("var/lib/aide/aide.db.gz", "")

    results = _by_name(security.hardening(check_context))
    assert len(results) == 12
    disabled = sorted(name for name, r in results.items() if r.verdict is Verdict.WARNING)
    assert disabled == ["fail2ban", "maldet", "sysctl-hardening", "umask"]
    assert results["firewall-ssh"].verdict is Verdict.NORMAL
    assert results["kernel-current"].message == "✓ System state: kernel up to date"


def test_hardening_unreadable_sources_are_unknown(check_context: CheckContext, fake_runner):
    fake_runner.missing.add("sysctl")
    results = _by_name(security.hardening(check_context))
    assert len(results) == 12
    assert results["dmesg-restrict"].verdict is Verdict.UNKNOWN
    assert results["password-max-age"].verdict is Verdict.UNKNOWN
    assert results["umask"].message.startswith("File permissions: unavailable")


def test_scan_catalogue():
    assert security.SCAN.name == "security"
    assert security.SCAN.checks[-1].name == "hardening"
