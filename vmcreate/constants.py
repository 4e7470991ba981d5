"""Global constants and defaults for vm-create."""

from __future__ import annotations

import os
import re
from pathlib import Path

LIBVIRT_URI = os.environ.get("LIBVIRT_URI", "qemu:///system")
TRUTHY = {"1", "true", "yes", "on"}

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in {"1", "true", "yes", "on"}

DISK_SIZE_RE = re.compile(r"^\d+[KMGTkmgt]?$")
# Used as both hostname label and file name stem
VM_NAME_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?$")
NET_IF_RE = re.compile(r"^[A-Za-z0-9_.:-]{1,15}$")

SUPPORTED_GRAPHICS = {"none", "vnc", "spice"}
SUPPORTED_NETWORK_MODELS = {"virtio", "e1000", "e1000e", "rtl8139"}
ISO_TOOLS = ("mkisofs", "genisoimage", "xorrisofs")

DEFAULT_CONFIG_ENV = "VM_CREATE_CONFIG"
DEFAULT_SSH_PUBKEY = Path("~/.ssh/id_rsa.pub")
DEFAULT_PACKAGES = ("qemu-guest-agent",)

DISK_SUFFIX = ".qcow2"
SEED_ISO_SUFFIX = ".cloudinit.iso"
SEED_VOLUME_LABEL = "cidata"
CLOUD_INIT_FILES = ("meta-data", "user-data", "network-config")
FALLBACK_INSTANCE_ID = "i-abcdefg"

SHUTDOWN_POLL_INTERVAL = 2.0

_SENSITIVE_FIELDS = {"root_password"}
