"""VM definition, boot and post-boot media handling for vm-create."""

from __future__ import annotations

import time
from pathlib import Path
from typing import List, Optional, Tuple

from vmcreate.constants import SHUTDOWN_POLL_INTERVAL
from vmcreate.exceptions import VMCreateError
from vmcreate.models import CreateRequest, VMConfig
from vmcreate.utils import log, run


def virt_install_command(request: CreateRequest, cfg: VMConfig) -> List[str]:
    return [
        "virt-install",
        "--connect",
        cfg.libvirt_uri,
        "--name",
        request.vm_name,
        "--memory",
        str(cfg.memory_mb),
        "--vcpus",
        str(cfg.cpus),
        "--disk",
        f"{request.disk_image},device=disk,bus=virtio,driver.discard=unmap",
        "--disk",
        f"{request.seed_iso},device=cdrom",
        "--os-variant",
        cfg.os_variant,
        "--virt-type",
        "kvm",
        "--graphics",
        cfg.graphics,
        "--network",
        f"network={cfg.network},model={cfg.network_model}",
        "--import",
        "--boot",
        "hd,menu=on",
        "--noautoconsole",
    ]


def domblklist_command(vm_name: str, libvirt_uri: str) -> List[str]:
    return ["virsh", "--connect", libvirt_uri, "domblklist", vm_name]


def eject_command(vm_name: str, target: str, libvirt_uri: str) -> List[str]:
    return ["virsh", "--connect", libvirt_uri, "change-media", vm_name, "--path", target, "--eject", "--force"]


def parse_domblklist(output: str) -> List[Tuple[str, str]]:
    """Parse ``virsh domblklist`` output into ``(target, source)`` rows."""
    rows: List[Tuple[str, str]] = []
    for line in output.splitlines():
        parts = line.split(None, 1)
        if len(parts) != 2:
            continue
        target, source = parts[0], parts[1].strip()
        if target == "Target" or set(target) == {"-"}:
            continue
        rows.append((target, source))
    return rows


def find_media_target(rows: List[Tuple[str, str]], filename: str) -> Optional[str]:
    for target, source in rows:
        if Path(source).name == filename:
            return target
    return None


def _load_libvirt():
    # Only the shutdown wait needs the bindings
    try:
        import libvirt  # type: ignore
    except ImportError as exc:
        raise VMCreateError(f"libvirt python bindings not available: {exc}") from exc
    return libvirt


class VMManager:
    def __init__(self, vm_config: VMConfig, request: CreateRequest) -> None:
        self.cfg = vm_config
        self.request = request
        self.conn = None
        self.domain = None
        self._libvirt = None

    def connect(self) -> None:
        libvirt = _load_libvirt()
        self._libvirt = libvirt
        self.conn = libvirt.open(self.cfg.libvirt_uri)
        if self.conn is None:
            raise VMCreateError(f"Failed to open libvirt connection to {self.cfg.libvirt_uri}")

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def launch(self) -> None:
        """Define and boot the VM; returns once virt-install reports it started."""
        log("INFO", f"Defining and starting VM {self.request.vm_name}")
        run(virt_install_command(self.request, self.cfg))
        log("SUCCESS", f"VM {self.request.vm_name} started")

    def _lookup_domain(self):
        if self.conn is None:
            raise VMCreateError("libvirt connection not established")
        if self.domain is None:
            try:
                self.domain = self.conn.lookupByName(self.request.vm_name)
            except self._libvirt.libvirtError as exc:
                raise VMCreateError(f"Domain {self.request.vm_name} not found: {exc}") from exc
        return self.domain

    def wait_until_stopped(self, timeout: float, interval: float = SHUTDOWN_POLL_INTERVAL) -> bool:
        """Poll until the guest powers itself off; False if ``timeout`` expires first."""
        if timeout <= 0:
            return False
        domain = self._lookup_domain()
        log("INFO", f"Waiting up to {int(timeout)}s for {self.request.vm_name} to finish first boot and power off")
        deadline = time.monotonic() + timeout
        while True:
            try:
                active = domain.isActive()
            except self._libvirt.libvirtError as exc:
                raise VMCreateError(f"Lost track of domain {self.request.vm_name}: {exc}") from exc
            if not active:
                log("INFO", f"Domain {self.request.vm_name} is no longer active")
                return True
            if time.monotonic() >= deadline:
                return False
            time.sleep(interval)

    def find_seed_target(self) -> str:
        result = run(
            domblklist_command(self.request.vm_name, self.cfg.libvirt_uri),
            capture_output=True,
        )
        rows = parse_domblklist(result.stdout)
        target = find_media_target(rows, self.request.seed_iso.name)
        if target is None:
            raise VMCreateError(
                f"Seed image {self.request.seed_iso.name} is not attached to {self.request.vm_name}"
            )
        return target

    def eject_seed(self) -> str:
        """Eject the seed ISO from the VM and delete it from the host."""
        if not self.wait_until_stopped(self.cfg.shutdown_timeout):
            if self.cfg.shutdown_timeout > 0:
                log(
                    "WARN",
                    f"{self.request.vm_name} still running after {self.cfg.shutdown_timeout}s; "
                    "forcing live eject of the seed image",
                )
        target = self.find_seed_target()
        log("INFO", f"Ejecting {self.request.seed_iso.name} from {self.request.vm_name} ({target})")
        run(eject_command(self.request.vm_name, target, self.cfg.libvirt_uri))
        self.request.seed_iso.unlink(missing_ok=True)
        log("SUCCESS", f"Removed seed image {self.request.seed_iso}")
        return target
