"""Utility helpers for normalization runs."""
