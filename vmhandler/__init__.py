"""Framework for virtual machine extension handlers: operations, sequence numbers, settings and status."""

__version__ = "0.1.0"