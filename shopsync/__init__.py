"""Shopee seller-operations sync engine"""

__version__ = "0.4.0"
