"""Service infrastructure for the billing kernel (write side)."""

from billing_kernel.services.base import BaseService

__all__ = ["BaseService"]
