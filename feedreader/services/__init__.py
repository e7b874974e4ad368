"""
FeedReader Services
===================

Service layer shared by the CLI and other front ends.
"""

from .subscription_service import SubscribeResult, SubscriptionService

__all__ = [
    'SubscriptionService',
    'SubscribeResult',
]
