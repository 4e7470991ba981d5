"""Configuration loading and argument resolution for vm-create."""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from vmcreate.constants import (
    DEFAULT_CONFIG_ENV,
    DISK_SUFFIX,
    LIBVIRT_URI,
    NET_IF_RE,
    SEED_ISO_SUFFIX,
    SUPPORTED_GRAPHICS,
    SUPPORTED_NETWORK_MODELS,
    TRUTHY,
    VM_NAME_RE,
)
from vmcreate.exceptions import VMCreateError
from vmcreate.models import (
    CopyDisk,
    CreateRequest,
    DiskMode,
    OverlayDisk,
    ResizedCopyDisk,
    VMConfig,
)
from vmcreate.utils import (
    generate_password,
    get_env,
    get_env_bool,
    log,
    parse_int_env,
    read_ssh_pubkeys,
    validate_disk_size,
)

# Environment variable -> VMConfig field
_ENV_FIELDS = {
    "VM_GRAPHICS": "graphics",
    "VM_NS_DOMAIN": "dns_domain",
    "OS_VARIANT": "os_variant",
    "VM_NETIF": "net_if",
    "VM_NETWORK": "network",
    "VM_NETWORK_MODEL": "network_model",
    "VM_TIMEZONE": "timezone",
    "ROOT_PASSWORD": "root_password",
    "VM_IMAGE_GROUP": "image_group",
    "ISO_TOOL": "iso_tool",
    "VM_IP": "static_address",
    "VM_GATEWAY": "gateway",
    "LIBVIRT_URI": "libvirt_uri",
}

_STRING_FIELDS = frozenset(_ENV_FIELDS.values()) | {"ssh_pubkey_path", "temp_dir"}
_LIST_FIELDS = frozenset({"packages", "nameservers", "ssh_pubkeys"})


def load_settings_file(config_path: Path) -> Dict[str, Any]:
    """Read a YAML mapping of VMConfig field names to values."""
    if not config_path.exists():
        raise VMCreateError(f"Settings file missing: {config_path}")
    try:
        data = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as exc:
        raise VMCreateError(f"Settings file {config_path} contains invalid YAML: {exc}")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise VMCreateError(f"Settings file {config_path} must contain a YAML mapping")
    known = {f.name for f in dataclasses.fields(VMConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise VMCreateError(f"Unknown setting(s) in {config_path}: {', '.join(unknown)}")
    return data


def _split_list(raw: Any) -> List[str]:
    if isinstance(raw, (list, tuple)):
        return [str(item).strip() for item in raw if str(item).strip()]
    return [item.strip() for item in str(raw).split(",") if item.strip()]


def _as_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in TRUTHY


def _apply_settings(cfg: VMConfig, values: Dict[str, Any], source: Path) -> None:
    """Copy settings file values onto ``cfg``; scalar fields take their string form."""
    for name, value in values.items():
        if value is None:
            continue
        if name in _LIST_FIELDS:
            if isinstance(value, dict):
                raise VMCreateError(f"Setting '{name}' in {source} must be a list or comma-separated string")
            setattr(cfg, name, value)
            continue
        if isinstance(value, (dict, list, tuple)):
            raise VMCreateError(f"Setting '{name}' in {source} must be a single value")
        if name in _STRING_FIELDS:
            value = str(value)
        setattr(cfg, name, value)


def parse_env(config_path: Optional[Path] = None, announce_password: bool = True) -> VMConfig:
    """Build the run settings: defaults, then the settings file, then the environment.

    A generated root password is logged once unless ``announce_password`` is
    false; callers that create nothing pass false.
    """
    if config_path is None:
        env_path = get_env(DEFAULT_CONFIG_ENV)
        if env_path:
            config_path = Path(env_path)

    cfg = VMConfig(libvirt_uri=LIBVIRT_URI)
    if config_path is not None:
        _apply_settings(cfg, load_settings_file(config_path), config_path)

    for env_name, field_name in _ENV_FIELDS.items():
        raw = get_env(env_name)
        if raw is not None:
            setattr(cfg, field_name, raw.strip())

    cfg.use_backing_image = get_env_bool("USE_BACKING_IMAGE", _as_bool(cfg.use_backing_image))

    cfg.memory_mb = parse_int_env("VM_RAM", str(cfg.memory_mb), min_val=128)
    cfg.cpus = parse_int_env("VM_CPU", str(cfg.cpus))
    cfg.shutdown_timeout = parse_int_env("SHUTDOWN_TIMEOUT", str(cfg.shutdown_timeout), min_val=0)

    packages_raw = get_env("VM_PACKAGES")
    cfg.packages = _split_list(packages_raw if packages_raw is not None else cfg.packages)
    nameservers_raw = get_env("VM_NAMESERVERS")
    cfg.nameservers = _split_list(nameservers_raw if nameservers_raw is not None else cfg.nameservers)

    pubkey_raw = get_env("SSH_PUBKEY_FILE")
    cfg.ssh_pubkey_path = Path(pubkey_raw if pubkey_raw is not None else cfg.ssh_pubkey_path)
    temp_raw = get_env("TEMP_DIR")
    cfg.temp_dir = Path(temp_raw if temp_raw is not None else cfg.temp_dir)

    cfg.graphics = str(cfg.graphics).strip().lower() or "none"
    if cfg.graphics not in SUPPORTED_GRAPHICS:
        supported = ", ".join(sorted(SUPPORTED_GRAPHICS))
        raise VMCreateError(f"Unsupported VM_GRAPHICS '{cfg.graphics}'. Supported: {supported}")

    cfg.network_model = str(cfg.network_model).strip().lower()
    if cfg.network_model not in SUPPORTED_NETWORK_MODELS:
        supported = ", ".join(sorted(SUPPORTED_NETWORK_MODELS))
        raise VMCreateError(f"Unsupported VM_NETWORK_MODEL '{cfg.network_model}'. Supported: {supported}")

    if not NET_IF_RE.match(str(cfg.net_if)):
        raise VMCreateError(f"Invalid VM_NETIF '{cfg.net_if}'")

    if not cfg.static_address:
        cfg.static_address = None
        if cfg.gateway or cfg.nameservers:
            log("WARN", "VM_GATEWAY/VM_NAMESERVERS are ignored without VM_IP; using DHCP")
    elif "/" not in cfg.static_address:
        raise VMCreateError(f"VM_IP must be in CIDR form, e.g. 192.168.122.10/24 (got '{cfg.static_address}')")
    cfg.gateway = cfg.gateway or None

    if not cfg.root_password:
        cfg.root_password = generate_password()
        if announce_password:
            log("INFO", f"No ROOT_PASSWORD set; generated random root password: {cfg.root_password}")

    cfg.ssh_pubkeys = read_ssh_pubkeys(cfg.ssh_pubkey_path)
    return cfg


def select_disk_mode(cfg: VMConfig, size: Optional[str]) -> DiskMode:
    if cfg.use_backing_image:
        return OverlayDisk(size=size)
    if size:
        return ResizedCopyDisk(size=size)
    return CopyDisk()


def resolve_request(
    vm_name: str,
    base_image: str,
    cfg: VMConfig,
    size: Optional[str] = None,
) -> CreateRequest:
    """Validate positional arguments and derive every path the run will touch."""
    vm_name = (vm_name or "").strip()
    if not vm_name:
        raise VMCreateError("VMName must not be empty")
    if not VM_NAME_RE.match(vm_name):
        raise VMCreateError(
            f"Invalid VMName '{vm_name}'. Use letters, digits and inner hyphens only (max 63 characters)"
        )
    if not base_image:
        raise VMCreateError("BaseImage must not be empty")
    if size is not None:
        size = validate_disk_size(size.strip())

    vm_name_lc = vm_name.lower()
    base = Path(base_image)
    image_dir = base.parent
    return CreateRequest(
        vm_name=vm_name,
        vm_name_lc=vm_name_lc,
        base_image=base,
        disk_image=image_dir / f"{vm_name_lc}{DISK_SUFFIX}",
        seed_iso=image_dir / f"{vm_name_lc}{SEED_ISO_SUFFIX}",
        disk_mode=select_disk_mode(cfg, size),
    )
