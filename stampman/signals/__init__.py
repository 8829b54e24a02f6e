"""
Stampman signals — public event API.

Emitted signals (by stampman.adapters.sinks.SignalEventSink, after commit):
- stamps_issued: sender=StampsIssued, event=StampsIssued
- points_added: sender=PointsAdded, event=PointsAdded
- reward_redeemed: sender=RewardRedeemed, event=RewardRedeemed
"""

from django.dispatch import Signal

stamps_issued = Signal()
points_added = Signal()
reward_redeemed = Signal()
