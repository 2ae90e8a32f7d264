"""Streaming chat relay and client for hosted language models."""

__version__ = "0.1.0"
