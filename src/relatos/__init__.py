"""Relatos agent — conversational read-only query agent over safety reports."""

__version__ = "1.0.0"
