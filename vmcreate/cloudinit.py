"""Cloud-init document rendering for vm-create.

All three documents are built as Python data and serialized with
``yaml.safe_dump`` so that values such as SSH key comments or time zones are
quoted by the emitter instead of being spliced into template text.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from vmcreate.models import CloudInitBundle, CreateRequest, VMConfig
from vmcreate.utils import ensure_directory, generate_instance_id, hash_password, log


def _dump(data: Dict[str, object]) -> str:
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False)


def render_meta_data(request: CreateRequest, instance_id: Optional[str] = None) -> str:
    meta: Dict[str, object] = {
        "instance-id": instance_id or generate_instance_id(),
        "local-hostname": request.vm_name_lc,
    }
    return _dump(meta)


def render_user_data(request: CreateRequest, cfg: VMConfig, password_hash: Optional[str] = None) -> str:
    root_user: Dict[str, object] = {
        "name": "root",
        "lock_passwd": False,
        "hashed_passwd": password_hash or hash_password(cfg.root_password),
    }
    if cfg.ssh_pubkeys:
        root_user["ssh_authorized_keys"] = list(cfg.ssh_pubkeys)

    user_cfg: Dict[str, object] = {
        "hostname": request.vm_name_lc,
        "fqdn": request.fqdn(cfg),
        "manage_etc_hosts": True,
        "timezone": cfg.timezone,
        "package_update": True,
        "packages": list(cfg.packages),
        "ssh_pwauth": False,
        "disable_root": False,
        "chpasswd": {"expire": False},
        "users": [root_user],
        "growpart": {"mode": "auto", "devices": ["/"]},
        "runcmd": [["systemctl", "enable", "--now", "fstrim.timer"]],
        # The guest powers off once provisioning is done; the operator starts it again.
        "power_state": {"mode": "poweroff"},
    }
    return "#cloud-config\n" + _dump(user_cfg)


def render_network_config(cfg: VMConfig) -> str:
    ethernet: Dict[str, object]
    if cfg.static_address:
        ethernet = {"dhcp4": False, "addresses": [cfg.static_address]}
        if cfg.gateway:
            ethernet["routes"] = [{"to": "default", "via": cfg.gateway}]
        if cfg.nameservers:
            ethernet["nameservers"] = {
                "addresses": list(cfg.nameservers),
                "search": [cfg.dns_domain],
            }
    else:
        ethernet = {"dhcp4": True}
    network: Dict[str, object] = {"version": 2, "ethernets": {cfg.net_if: ethernet}}
    return _dump(network)


def render_bundle(request: CreateRequest, cfg: VMConfig) -> CloudInitBundle:
    return CloudInitBundle(
        meta_data=render_meta_data(request),
        user_data=render_user_data(request, cfg),
        network_config=render_network_config(cfg),
    )


def write_bundle(bundle: CloudInitBundle, directory: Path) -> List[Path]:
    """Write the documents into ``directory`` and return their paths."""
    ensure_directory(directory)
    written: List[Path] = []
    try:
        for name, content in bundle.documents():
            path = directory / name
            written.append(path)
            path.write_text(content, encoding="utf-8")
    except OSError:
        remove_documents(written)
        raise
    log("DEBUG", f"Wrote cloud-init documents to {directory}")
    return written


def remove_documents(paths: List[Path]) -> None:
    for path in paths:
        path.unlink(missing_ok=True)
