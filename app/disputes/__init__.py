"""Disputes app: booking disputes and their settlement out of escrow."""
