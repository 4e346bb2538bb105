"""Chat-based restaurant ordering bot with Paystack checkout."""

__version__ = "1.0.0"
