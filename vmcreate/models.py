"""Data models for vm-create."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from vmcreate.constants import DEFAULT_PACKAGES, DEFAULT_SSH_PUBKEY


@dataclass
class VMConfig:
    """Host-side settings shared by every stage of a run."""

    # Use the base image as a qcow2 backing file instead of copying it
    use_backing_image: bool = True
    memory_mb: int = 1024
    cpus: int = 2
    graphics: str = "none"  # "none", "vnc", "spice"
    dns_domain: str = "local"
    # See `osinfo-query os` for available variants
    os_variant: str = "ubuntu20.04"
    net_if: str = "enp1s0"
    network: str = "default"
    network_model: str = "virtio"
    timezone: str = "Europe/Moscow"
    packages: List[str] = field(default_factory=lambda: list(DEFAULT_PACKAGES))
    root_password: str = ""
    ssh_pubkey_path: Path = DEFAULT_SSH_PUBKEY
    ssh_pubkeys: List[str] = field(default_factory=list)
    temp_dir: Path = Path(".")
    # Group owner of the new disk image; empty to leave ownership untouched
    image_group: str = "kvm"
    iso_tool: str = "mkisofs"
    shutdown_timeout: int = 600
    static_address: Optional[str] = None
    gateway: Optional[str] = None
    nameservers: List[str] = field(default_factory=list)
    libvirt_uri: str = "qemu:///system"


@dataclass(frozen=True)
class OverlayDisk:
    """Copy-on-write qcow2 overlay backed by the base image."""

    size: Optional[str] = None


@dataclass(frozen=True)
class CopyDisk:
    """Independent byte-for-byte copy of the base image."""


@dataclass(frozen=True)
class ResizedCopyDisk:
    """Independent copy grown to ``size`` after copying."""

    size: str


DiskMode = Union[OverlayDisk, CopyDisk, ResizedCopyDisk]


@dataclass
class CreateRequest:
    vm_name: str
    vm_name_lc: str
    base_image: Path
    disk_image: Path
    seed_iso: Path
    disk_mode: DiskMode

    def fqdn(self, cfg: VMConfig) -> str:
        return f"{self.vm_name_lc}.{cfg.dns_domain}"


@dataclass
class CloudInitBundle:
    meta_data: str
    user_data: str
    network_config: str

    def documents(self) -> List[tuple]:
        """Return ``(file name, content)`` pairs in packing order."""
        return [
            ("meta-data", self.meta_data),
            ("user-data", self.user_data),
            ("network-config", self.network_config),
        ]
