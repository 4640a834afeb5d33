"""Labelmaker command-line interface."""
