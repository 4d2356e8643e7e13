"""
burrow - Invitation-gated account provisioning and authentication.

The domain package holds the business logic; adapters implement its ports;
the api package exposes it over HTTP.
"""

__version__ = "0.1.0"
