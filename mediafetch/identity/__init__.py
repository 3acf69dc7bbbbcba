"""Egress identity(프록시) 풀."""

from .pool import HealthState, Identity, IdentityPool

__all__ = ["HealthState", "Identity", "IdentityPool"]
