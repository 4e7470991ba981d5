"""Stage-by-stage driver for a vm-create run."""

from __future__ import annotations

import subprocess
from enum import Enum
from typing import Callable, List, Optional

from vmcreate.cloudinit import render_bundle
from vmcreate.disk import planned_commands, provision_disk
from vmcreate.exceptions import PipelineError, VMCreateError
from vmcreate.models import CloudInitBundle, CreateRequest, VMConfig
from vmcreate.seed import iso_command, pack_seed
from vmcreate.utils import log
from vmcreate.vm import VMManager, domblklist_command, eject_command, virt_install_command

# Exit status reported when a delegated tool is not installed
COMMAND_NOT_FOUND = 127


class Stage(Enum):
    """Pipeline states; each value names the work that leads into the state."""

    ARGS_CHECKED = "argument resolution"
    DISK_CREATED = "disk provisioning"
    DOCS_RENDERED = "cloud-init rendering"
    SEED_PACKED = "seed image packaging"
    VM_LAUNCHED = "VM launch"
    MEDIA_EJECTED = "media ejection"


def _format_command(cmd) -> str:
    if isinstance(cmd, (list, tuple)):
        return " ".join(str(part) for part in cmd)
    return str(cmd)


class Pipeline:
    def __init__(self, request: CreateRequest, cfg: VMConfig, vm_manager: Optional[VMManager] = None) -> None:
        self.request = request
        self.cfg = cfg
        self.vm = vm_manager or VMManager(cfg, request)
        self.bundle: Optional[CloudInitBundle] = None
        # Resolution already happened when the request was built
        self.completed: List[Stage] = [Stage.ARGS_CHECKED]

    def run(self) -> None:
        steps = [
            (Stage.DISK_CREATED, self._provision_disk),
            (Stage.DOCS_RENDERED, self._render_documents),
            (Stage.SEED_PACKED, self._pack_seed),
            (Stage.VM_LAUNCHED, self.vm.launch),
            (Stage.MEDIA_EJECTED, self._eject_media),
        ]
        try:
            for stage, step in steps:
                self._run_stage(stage, step)
        finally:
            self.vm.close()

    def _run_stage(self, stage: Stage, step: Callable[[], object]) -> None:
        log("DEBUG", f"Stage: {stage.value}")
        try:
            step()
        except subprocess.CalledProcessError as exc:
            raise PipelineError(
                stage.value,
                f"{_format_command(exc.cmd)} exited with status {exc.returncode}",
                exc.returncode,
            ) from exc
        except FileNotFoundError as exc:
            raise PipelineError(stage.value, f"{exc.filename or exc}: not found", COMMAND_NOT_FOUND) from exc
        except VMCreateError as exc:
            raise PipelineError(stage.value, str(exc), exc.returncode) from exc
        except OSError as exc:
            raise PipelineError(stage.value, str(exc)) from exc
        self.completed.append(stage)

    def _provision_disk(self) -> None:
        provision_disk(self.request, self.cfg)

    def _render_documents(self) -> None:
        self.bundle = render_bundle(self.request, self.cfg)

    def _pack_seed(self) -> None:
        assert self.bundle is not None
        pack_seed(self.bundle, self.request.seed_iso, self.cfg.temp_dir, tool=self.cfg.iso_tool)

    def _eject_media(self) -> None:
        if self.cfg.shutdown_timeout > 0:
            self.vm.connect()
        self.vm.eject_seed()


def describe_plan(request: CreateRequest, cfg: VMConfig) -> List[str]:
    """Return a human-readable listing of everything a run would do."""
    bundle = render_bundle(request, cfg)
    lines = [
        f"VM name:      {request.vm_name} (hostname {request.fqdn(cfg)})",
        f"Base image:   {request.base_image}",
        f"Disk image:   {request.disk_image} ({type(request.disk_mode).__name__})",
        f"Seed image:   {request.seed_iso}",
        "",
        "Commands:",
    ]
    commands = list(planned_commands(request))
    if cfg.image_group:
        commands.append(["chown", f":{cfg.image_group}", str(request.disk_image)])
    commands.append(iso_command(cfg.iso_tool, request.seed_iso))
    commands.append(virt_install_command(request, cfg))
    commands.append(domblklist_command(request.vm_name, cfg.libvirt_uri))
    commands.append(eject_command(request.vm_name, "<target>", cfg.libvirt_uri))
    commands.append(["rm", "-f", str(request.seed_iso)])
    lines.extend(f"  {' '.join(cmd)}" for cmd in commands)
    for name, content in bundle.documents():
        lines.append("")
        lines.append(f"--- {name} ---")
        lines.extend(content.rstrip("\n").splitlines())
    return lines
