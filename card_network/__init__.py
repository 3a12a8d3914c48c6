"""
Card Network - a simplified card-payment authorization network.

Merchants authorize, capture, reverse and refund card payments while the
cardholder and merchant ledgers move funds between available and blocked
balances in lock-step.
"""

__version__ = "1.0.0"
