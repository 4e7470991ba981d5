"""Root disk provisioning for vm-create."""

from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import List, Optional

from vmcreate.exceptions import VMCreateError
from vmcreate.models import CopyDisk, CreateRequest, OverlayDisk, ResizedCopyDisk, VMConfig
from vmcreate.utils import log, parse_size_to_bytes, run


def overlay_command(base_image: Path, disk_image: Path, size: Optional[str] = None) -> List[str]:
    cmd = [
        "qemu-img",
        "create",
        "-f",
        "qcow2",
        "-F",
        "qcow2",
        "-b",
        str(base_image),
        str(disk_image),
    ]
    if size:
        cmd.append(size)
    return cmd


def resize_command(disk_image: Path, size: str) -> List[str]:
    return ["qemu-img", "resize", str(disk_image), size]


def planned_commands(request: CreateRequest) -> List[List[str]]:
    """Describe the disk commands for ``request`` without running them."""
    mode = request.disk_mode
    if isinstance(mode, OverlayDisk):
        return [overlay_command(request.base_image, request.disk_image, mode.size)]
    copy = ["cp", "-f", str(request.base_image), str(request.disk_image)]
    if isinstance(mode, ResizedCopyDisk):
        return [copy, resize_command(request.disk_image, mode.size)]
    return [copy]


def virtual_size(image: Path) -> int:
    """Return the virtual size reported by ``qemu-img info``, or 0 when unknown."""
    info = run(["qemu-img", "info", "--output=json", str(image)], check=False, capture_output=True)
    if info.returncode != 0:
        return 0
    try:
        return int(json.loads(info.stdout).get("virtual-size", 0))
    except (ValueError, TypeError):
        return 0


def _grow(disk_image: Path, size: str) -> None:
    # Only expand, never shrink
    current_vsize = virtual_size(disk_image)
    requested_bytes = parse_size_to_bytes(size)
    if current_vsize and current_vsize >= requested_bytes:
        cur_gb = current_vsize // (1024**3)
        log("INFO", f"Base image already {cur_gb}G (>= {size}); skip resize")
        return
    log("INFO", f"Resizing disk to {size}...")
    run(resize_command(disk_image, size))


def provision_disk(request: CreateRequest, cfg: VMConfig) -> Path:
    """Create the VM root disk next to the base image and hand it to the image group."""
    disk_image = request.disk_image
    if disk_image.exists():
        raise VMCreateError(
            f"Disk image {disk_image} already exists; remove it or pick another VM name"
        )

    mode = request.disk_mode
    if isinstance(mode, OverlayDisk):
        log("INFO", f"Creating overlay disk {disk_image} (backing file {request.base_image})")
        run(overlay_command(request.base_image, disk_image, mode.size))
    elif isinstance(mode, (CopyDisk, ResizedCopyDisk)):
        log("INFO", f"Copying {request.base_image} to {disk_image}")
        if not request.base_image.is_file():
            raise VMCreateError(f"Base image not found: {request.base_image}")
        shutil.copyfile(request.base_image, disk_image)
        if isinstance(mode, ResizedCopyDisk):
            _grow(disk_image, mode.size)
    else:  # pragma: no cover
        raise VMCreateError(f"Unknown disk mode {mode!r}")

    if cfg.image_group:
        try:
            shutil.chown(disk_image, group=cfg.image_group)
        except LookupError:
            raise VMCreateError(f"Group '{cfg.image_group}' does not exist; set VM_IMAGE_GROUP")
    log("SUCCESS", f"Disk image ready: {disk_image}")
    return disk_image
