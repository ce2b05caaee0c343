"""vmrc -- Remote control of virtual machine displays and input.

Drives a VM's screen and input surface through interchangeable backends
(libvirt/SPICE, VNC, a mock), runs a periodic frame loop per session,
and layers OCR text search and vision-model action planning on top of
captured frames.
"""

__version__ = "0.1.0"
