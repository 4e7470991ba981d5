"""vm-create package."""

__all__ = [
    "cli",
    "cloudinit",
    "config",
    "constants",
    "disk",
    "exceptions",
    "models",
    "pipeline",
    "seed",
    "utils",
    "vm",
]
