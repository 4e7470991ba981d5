"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from vmcreate.config import resolve_request
from vmcreate.models import CreateRequest, VMConfig


@pytest.fixture
def default_vm_config(tmp_path) -> VMConfig:
    """Return a VMConfig with the stock defaults and test-local paths."""
    return VMConfig(
        root_password="password",
        ssh_pubkey_path=tmp_path / "id_rsa.pub",
        ssh_pubkeys=["ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIExample user@host"],
        temp_dir=tmp_path / "work",
        libvirt_uri="qemu:///system",
    )


@pytest.fixture
def base_image(tmp_path) -> Path:
    images = tmp_path / "images"
    images.mkdir()
    image = images / "base.qcow2"
    image.write_bytes(b"QFI\xfb" + b"\0" * 60)
    return image


@pytest.fixture
def request_for(default_vm_config, base_image):
    """Build a CreateRequest for the base image fixture."""

    def _build(name: str = "Test1", size=None, cfg: VMConfig = None) -> CreateRequest:
        return resolve_request(name, str(base_image), cfg or default_vm_config, size=size)

    return _build


@pytest.fixture
def mock_env(monkeypatch):
    """Helper to set environment variables for tests."""

    def _set(**kwargs):
        for key, value in kwargs.items():
            if value is None:
                monkeypatch.delenv(key, raising=False)
            else:
                monkeypatch.setenv(key, str(value))

    return _set


# Environment variables read by parse_env(); cleared for a clean slate.
_PARSE_ENV_VARS = [
    "VM_CREATE_CONFIG",
    "USE_BACKING_IMAGE",
    "VM_RAM",
    "VM_CPU",
    "VM_GRAPHICS",
    "VM_NS_DOMAIN",
    "OS_VARIANT",
    "VM_NETIF",
    "VM_NETWORK",
    "VM_NETWORK_MODEL",
    "VM_TIMEZONE",
    "VM_PACKAGES",
    "ROOT_PASSWORD",
    "SSH_PUBKEY_FILE",
    "TEMP_DIR",
    "VM_IMAGE_GROUP",
    "ISO_TOOL",
    "SHUTDOWN_TIMEOUT",
    "VM_IP",
    "VM_GATEWAY",
    "VM_NAMESERVERS",
    "LIBVIRT_URI",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Clear all environment variables that parse_env() reads and point the SSH key at tmp_path."""
    for key in _PARSE_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("SSH_PUBKEY_FILE", str(tmp_path / "missing.pub"))
