"""DocVault: multi-tenant document vault with one-time delivery tokens."""

__version__ = "1.0.0"
