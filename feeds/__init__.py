"""Upstream feed clients for the MLB error bot."""
