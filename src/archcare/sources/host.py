"""psutil-backed readings of memory, disks, load, processes and sockets."""

from __future__ import annotations

import logging
import os
import re
import socket
from dataclasses import dataclass

import psutil

from archcare.errors import Unavailable

logger = logging.getLogger(__name__)

MINER_PATTERN = re.compile(r"cryptominer|coinminer|xmrig|minerd", re.IGNORECASE)
SUSPICIOUS_PORTS = frozenset({23, 513, 514, 1080, 3128, 8080})
_LOOPBACK = ("127.", "::1")


@dataclass(frozen=True)
class MemoryUsage:
    total: int
    used: int
    available: int
    percent: float


@dataclass(frozen=True)
class ProcessUsage:
    pid: int
    name: str
    memory_percent: float


@dataclass(frozen=True)
class DiskUsage:
    device: str
    mount_point: str
    fstype: str
    options: str
    total: int
    used: int
    percent: float


def memory() -> MemoryUsage:
    vm = psutil.virtual_memory()
    return MemoryUsage(total=vm.total, used=vm.used, available=vm.available, percent=vm.percent)


def swap() -> MemoryUsage | None:
    """Swap usage, or None when no swap is configured."""
    sm = psutil.swap_memory()
    if not sm.total:
        return None
    return MemoryUsage(total=sm.total, used=sm.used, available=sm.free, percent=sm.percent)


def mounted_filesystems() -> list[DiskUsage]:
    """Usage of every writable, physically backed mount."""
    usages: list[DiskUsage] = []
    for partition in psutil.disk_partitions(all=False):
        if "rw" not in partition.opts.split(","):
            continue
        if not partition.device.startswith("/dev/") or "/snap/" in partition.mountpoint:
            continue
        try:
            usage = psutil.disk_usage(partition.mountpoint)
        except (PermissionError, FileNotFoundError):
            logger.debug("Cannot stat mount point %s", partition.mountpoint)
            continue
        usages.append(
            DiskUsage(
                device=partition.device,
                mount_point=partition.mountpoint,
                fstype=partition.fstype,
                options=partition.opts,
                total=usage.total,
                used=usage.used,
                percent=usage.percent,
            )
        )
    return usages


def disk_usage(mount_point: str) -> float:
    try:
        return psutil.disk_usage(mount_point).percent
    except (PermissionError, FileNotFoundError) as e:
        raise Unavailable(mount_point, str(e)) from None


def load_average() -> tuple[float, float, float]:
    if not hasattr(os, "getloadavg"):
        raise Unavailable("load average", "not supported on this platform")
    return os.getloadavg()


def cpu_count() -> int:
    return psutil.cpu_count() or 1


def cpu_percent(interval: float = 0.3) -> float:
    return psutil.cpu_percent(interval=interval)


def memory_consumers() -> list[ProcessUsage]:
    """Every readable process, largest resident memory share first."""
    processes = []
    for proc in psutil.process_iter(["pid", "name", "memory_percent"]):
        try:
            info = proc.info
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue
        processes.append(
            ProcessUsage(
                pid=info["pid"],
                name=info["name"] or "?",
                memory_percent=info["memory_percent"] or 0.0,
            )
        )
    return sorted(processes, key=lambda p: p.memory_percent, reverse=True)


def miner_processes() -> list[str]:
    """``pid name`` of running processes whose name or command line looks like a crypto miner."""
    found = []
    for proc in psutil.process_iter(["pid", "name", "cmdline"]):
        try:
            name = proc.info["name"] or ""
            cmdline = " ".join(proc.info["cmdline"] or [])
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue
        if MINER_PATTERN.search(name) or MINER_PATTERN.search(cmdline):
            found.append(f"{proc.info['pid']} {name}")
    return found


def _inet_connections() -> list:
    try:
        return psutil.net_connections(kind="inet")
    except psutil.AccessDenied:
        raise Unavailable("network connections", "permission denied") from None


def external_connections() -> int:
    """Established TCP connections whose remote end is not loopback."""
    count = 0
    for conn in _inet_connections():
        if conn.status != psutil.CONN_ESTABLISHED or not conn.raddr:
            continue
        if conn.raddr.ip.startswith(_LOOPBACK):
            continue
        count += 1
    return count


def listening_ports() -> set[int]:
    """Listening TCP ports plus bound, unconnected UDP ports."""
    ports = set()
    for conn in _inet_connections():
        if not conn.laddr:
            continue
        if conn.status == psutil.CONN_LISTEN:
            ports.add(conn.laddr.port)
        elif conn.type == socket.SOCK_DGRAM and not conn.raddr:
            ports.add(conn.laddr.port)
    return ports
