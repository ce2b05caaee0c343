"""Backend drivers for vmrc.

One driver per backend kind, all conforming to the BackendDriver
interface so the session engine never inspects which protocol it is
talking to.

Public API:
    BackendDriver -- Abstract base class
    MockDriver -- Placeholder frames, logged input
    SpiceDriver -- libvirt/QEMU via virsh
    VncDriver -- vncsnapshot + vncdo
    UnsupportedDriver -- Fails every call for unimplemented kinds
"""

from vmrc.drivers.base import (
    BackendDriver,
    CaptureError,
    DriverConnectionError,
    DriverError,
    InputError,
    UnsupportedBackendError,
)

__all__ = [
    "BackendDriver",
    "CaptureError",
    "DriverConnectionError",
    "DriverError",
    "InputError",
    "UnsupportedBackendError",
    "MockDriver",
    "SpiceDriver",
    "UnsupportedDriver",
    "VncDriver",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations."""
    if name == "MockDriver":
        from vmrc.drivers.mock import MockDriver
        return MockDriver
    if name == "SpiceDriver":
        from vmrc.drivers.spice import SpiceDriver
        return SpiceDriver
    if name == "VncDriver":
        from vmrc.drivers.vnc import VncDriver
        return VncDriver
    if name == "UnsupportedDriver":
        from vmrc.drivers.unsupported import UnsupportedDriver
        return UnsupportedDriver
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
