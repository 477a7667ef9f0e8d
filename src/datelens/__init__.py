"""Layered safety and insight analysis for dating-app conversation history."""

__version__ = "0.1.0"
