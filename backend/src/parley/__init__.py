"""Parley realtime building blocks."""
