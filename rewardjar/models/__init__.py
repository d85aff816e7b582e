# rewardjar/models/__init__.py

"""
Models Package

The wallet update queue is the only table this service owns; issued cards,
businesses and customers live in the external card data layer.
"""

from rewardjar.core import db

from .wallet_update import WalletUpdate, UpdateType, UpdateStatus

__all__ = ['db', 'WalletUpdate', 'UpdateType', 'UpdateStatus']
