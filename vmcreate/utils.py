"""Utility functions for vm-create."""

from __future__ import annotations

import os
import secrets
import string
import subprocess
from pathlib import Path
from typing import List, Optional

try:
    import bcrypt  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("bcrypt is required but not installed") from exc

from vmcreate.constants import (
    _LOG_VERBOSE,
    DISK_SIZE_RE,
    FALLBACK_INSTANCE_ID,
    TRUTHY,
)
from vmcreate.exceptions import VMCreateError

_SIZE_MULTIPLIERS = {"": 1, "K": 1024, "M": 1024**2, "G": 1024**3, "T": 1024**4}


def log(level: str, message: str) -> None:
    """Lightweight structured logging compatible with existing colour expectation."""
    if level == "DEBUG" and not _LOG_VERBOSE:
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    print(f"{colour}[{level}]{reset} {message}", flush=True)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def get_env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.lower() in TRUTHY


def parse_int_env(name: str, default: str, min_val: int = 1, max_val: Optional[int] = None) -> int:
    raw = get_env(name, default)
    assert raw is not None
    try:
        value = int(raw)
    except ValueError:
        raise VMCreateError(f"{name} must be an integer (got '{raw}')")
    if value < min_val:
        raise VMCreateError(f"{name} must be >= {min_val} (got {value})")
    if max_val is not None and value > max_val:
        raise VMCreateError(f"{name} must be <= {max_val} (got {value})")
    return value


def validate_disk_size(raw: str) -> str:
    if not DISK_SIZE_RE.match(raw):
        raise VMCreateError(
            f"Invalid VMSize '{raw}'. Use a number with optional suffix: K, M, G, T (e.g. '20G')"
        )
    return raw.upper()


def parse_size_to_bytes(raw: str) -> int:
    """Convert a qemu-img style size (``20G``, ``512M``) to bytes."""
    size = validate_disk_size(raw)
    if size[-1].isdigit():
        return int(size)
    return int(size[:-1]) * _SIZE_MULTIPLIERS[size[-1]]


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def generate_password(length: int = 16) -> str:
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def hash_password(password: str) -> str:
    """Generate a bcrypt hash for cloud-init."""
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    return hashed.decode("utf-8")


def generate_instance_id() -> str:
    """Ask uuidgen for a cloud-init instance id, falling back to a fixed id."""
    try:
        result = subprocess.run(["uuidgen"], capture_output=True, text=True, check=True)
    except (OSError, subprocess.CalledProcessError):
        log("DEBUG", f"uuidgen unavailable; using instance-id {FALLBACK_INSTANCE_ID}")
        return FALLBACK_INSTANCE_ID
    return result.stdout.strip() or FALLBACK_INSTANCE_ID


def read_ssh_pubkeys(path: Path) -> List[str]:
    """Return the public keys in ``path``; an absent file yields no keys."""
    path = path.expanduser()
    if not path.is_file():
        log("WARN", f"SSH public key {path} not found; no trusted key will be installed")
        return []
    keys = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            keys.append(line)
    return keys


def run(cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
    """Run command with logging."""
    log("DEBUG", f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, check=check, text=True, **kwargs)
    return result
