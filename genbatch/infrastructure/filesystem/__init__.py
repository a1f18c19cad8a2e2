"""Artifact transfer and local download management."""
