"""MTProto proxy installer — provision and reconcile a telemt service."""

__version__ = "0.1.0"
