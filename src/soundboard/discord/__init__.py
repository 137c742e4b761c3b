"""Pycord implementations of the chat and voice collaborators."""
