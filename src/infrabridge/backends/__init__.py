"""Backend registry.

Each backend package exposes ``BACKEND`` (a ``BackendSpec``) and ``main``.
Packages are imported on demand so one backend's driver is never required to
run another.
"""

from __future__ import annotations

from importlib import import_module

from infrabridge.server import BackendSpec

BACKEND_NAMES = ("ansible", "ceph", "cloudflare", "postgresql", "prisma", "proxmox", "redis")


def get_backend(name: str) -> BackendSpec:
    if name not in BACKEND_NAMES:
        raise ValueError(f"Unknown backend: {name}. Available: {', '.join(BACKEND_NAMES)}")
    return import_module(f"infrabridge.backends.{name}").BACKEND


def list_backends() -> tuple[str, ...]:
    return BACKEND_NAMES


__all__ = ["BACKEND_NAMES", "get_backend", "list_backends"]
