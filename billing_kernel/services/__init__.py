"""Kernel services: sequence allocation and the audit / notification boundaries."""
