"""Tandem stranger chat service core."""
