"""Email adapters - Outgoing mail transports."""

from .console import ConsoleEmailSender

__all__ = ["ConsoleEmailSender"]
