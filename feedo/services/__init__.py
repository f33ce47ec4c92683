"""
Feedo Services
==============

Shared service layer used by the bot commands and the CLI.
"""

from .subscription_service import SubscriptionService, SubscribeResult

__all__ = [
    'SubscriptionService',
    'SubscribeResult',
]
