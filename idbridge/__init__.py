"""idbridge — external identity reconciliation and JIT user provisioning."""

__version__ = "0.1.0"
