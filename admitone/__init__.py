"""Admit One: one QR ticket per paid checkout, redeemable once at the door."""

__version__ = "1.0.0"
