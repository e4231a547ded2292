"""Parallel, fault-tolerant bulk pulls of container images and models."""

__version__ = "2.1.0"
