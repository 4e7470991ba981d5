"""CLI entry points for vm-create."""

from __future__ import annotations

import argparse
import dataclasses
from pathlib import Path
from typing import List, Optional

from vmcreate.config import parse_env, resolve_request
from vmcreate.constants import _SENSITIVE_FIELDS
from vmcreate.exceptions import PipelineError, UsageError, VMCreateError
from vmcreate.models import CreateRequest, VMConfig
from vmcreate.pipeline import Pipeline, describe_plan
from vmcreate.utils import log

DESCRIPTION = "Create a KVM virtual machine using a cloud image as its base disk."

EPILOG = """\
parameters:
  VMName     name for the new VM (also used as base for VM image naming);
             letters, digits and inner hyphens only
  BaseImage  base cloud image file pathname
  VMSize     (optional) size for the root disk of the new VM; accepted
             suffixes are K/M/G/T (size should be greater than the cloud
             image root partition size)

other settings:
  * settings come from the environment (VM_RAM, VM_CPU, VM_GRAPHICS,
    OS_VARIANT, USE_BACKING_IMAGE, ...) or a YAML file given by --config
  * contents of ~/.ssh/id_rsa.pub (SSH_PUBKEY_FILE) are added to the VM as
    trusted SSH public keys

notes:
  * the new VM image is placed in the same directory as the base one
  * cloud-init documents are written to TEMP_DIR (default: current
    directory) while the seed image is built; write permission required
  * the VM powers off after its first boot; start it again with
    'virsh start VMName'
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vm-create",
        description=DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("vm_name", nargs="?", metavar="VMName")
    parser.add_argument("base_image", nargs="?", metavar="BaseImage")
    parser.add_argument("vm_size", nargs="?", metavar="VMSize")
    parser.add_argument("--config", type=Path, default=None, help="YAML settings file")
    parser.add_argument("--show-config", action="store_true", help="Show resolved settings and exit")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print derived paths, cloud-init documents and commands, then exit",
    )
    return parser


def check_arguments(args: argparse.Namespace) -> None:
    if not args.vm_name or not args.base_image:
        raise UsageError("Parameters required")


def show_config(cfg: VMConfig) -> None:
    """Print the resolved settings."""
    for field in dataclasses.fields(cfg):
        value = getattr(cfg, field.name)
        if field.name in _SENSITIVE_FIELDS:
            print(f"  {field.name}: ********")
        elif isinstance(value, list):
            print(f"  {field.name}: {', '.join(str(item) for item in value) or '-'}")
        else:
            print(f"  {field.name}: {value}")


def print_summary_banner(request: CreateRequest, cfg: VMConfig) -> None:
    """Print a visually distinct summary once the VM has been created."""
    lines: List[str] = []
    lines.append(f"  VM: {request.vm_name} ({request.fqdn(cfg)})")
    lines.append(f"  Memory: {cfg.memory_mb} MiB | CPUs: {cfg.cpus} | OS variant: {cfg.os_variant}")
    lines.append(f"  Disk: {request.disk_image}")
    if cfg.use_backing_image:
        lines.append(f"  Backing file: {request.base_image} (keep it in place)")
    lines.append(f"  Start: virsh --connect {cfg.libvirt_uri} start {request.vm_name}")
    if cfg.ssh_pubkeys:
        lines.append(f"  SSH:   ssh root@{request.fqdn(cfg)}")

    max_len = max(len(line) for line in lines)
    border_len = max_len + 2
    banner_colour = "\033[0;36m"
    reset = "\033[0m"
    print(f"{banner_colour}{'=' * border_len}{reset}", flush=True)
    for line in lines:
        print(f"{banner_colour}{line}{reset}", flush=True)
    print(f"{banner_colour}{'=' * border_len}{reset}", flush=True)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.show_config:
        try:
            cfg = parse_env(args.config, announce_password=False)
        except VMCreateError as exc:
            log("ERROR", str(exc))
            return 1
        show_config(cfg)
        return 0

    try:
        check_arguments(args)
    except UsageError as exc:
        log("ERROR", str(exc))
        parser.print_help()
        return exc.returncode

    try:
        cfg = parse_env(args.config, announce_password=not args.dry_run)
        request = resolve_request(args.vm_name, args.base_image, cfg, size=args.vm_size)
    except VMCreateError as exc:
        log("ERROR", str(exc))
        return 1

    if args.dry_run:
        try:
            plan = describe_plan(request, cfg)
        except VMCreateError as exc:
            log("ERROR", str(exc))
            return exc.returncode
        for line in plan:
            print(line)
        log("INFO", "=== Dry-run complete (nothing created) ===")
        return 0

    log("INFO", f"VM: {request.vm_name} | Memory: {cfg.memory_mb} MiB | CPUs: {cfg.cpus}")
    log("INFO", f"Base image: {request.base_image} -> {request.disk_image}")

    try:
        Pipeline(request, cfg).run()
    except PipelineError as exc:
        log("ERROR", f"{exc.stage} failed: {exc.reason}")
        return exc.returncode
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        import traceback

        traceback.print_exc()
        return 1

    log("SUCCESS", f"VM created: {request.vm_name}")
    print_summary_banner(request, cfg)
    return 0
