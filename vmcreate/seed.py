"""Seed ISO packaging for vm-create."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import List

from vmcreate.cloudinit import remove_documents, write_bundle
from vmcreate.constants import CLOUD_INIT_FILES, ISO_TOOLS, SEED_VOLUME_LABEL
from vmcreate.exceptions import VMCreateError
from vmcreate.models import CloudInitBundle
from vmcreate.utils import log, run


def resolve_iso_tool(preferred: str) -> str:
    """Return ``preferred`` if installed, else the first available ISO 9660 authoring tool."""
    if shutil.which(preferred):
        return preferred
    for candidate in ISO_TOOLS:
        if candidate != preferred and shutil.which(candidate):
            log("INFO", f"{preferred} not found; packing seed image with {candidate}")
            return candidate
    raise VMCreateError(
        f"No ISO authoring tool found (tried {preferred}, {', '.join(t for t in ISO_TOOLS if t != preferred)})"
    )


def iso_command(tool: str, seed_iso: Path) -> List[str]:
    return [
        tool,
        "-o",
        str(seed_iso),
        "-V",
        SEED_VOLUME_LABEL,
        "-J",
        "-r",
        *CLOUD_INIT_FILES,
    ]


def pack_seed(bundle: CloudInitBundle, seed_iso: Path, temp_dir: Path, tool: str = "mkisofs") -> Path:
    """Pack the cloud-init documents into ``seed_iso``.

    The documents only live in ``temp_dir`` while the ISO is being authored;
    they are removed whether or not packing succeeds.
    """
    tool = resolve_iso_tool(tool)
    documents = write_bundle(bundle, temp_dir)
    try:
        log("INFO", f"Packing cloud-init seed image {seed_iso}")
        run(iso_command(tool, seed_iso.resolve()), cwd=str(temp_dir))
    finally:
        remove_documents(documents)
    log("SUCCESS", f"Seed image ready: {seed_iso}")
    return seed_iso
