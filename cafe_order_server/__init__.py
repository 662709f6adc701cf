"""Cafe ordering server: menu, customizable cart, guest checkout and order tracking."""

__version__ = "0.1.0"
