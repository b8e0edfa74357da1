"""Route image-generation jobs from clients to workers through a ZeroMQ broker."""

__version__ = "0.0.1"