"""Mailing-list adapters - Best-effort subscriber sync."""

from .beehiiv import BeehiivSubscriber

__all__ = ["BeehiivSubscriber"]
