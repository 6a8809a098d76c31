"""Tandem chat backend application."""
