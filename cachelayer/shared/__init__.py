"""Shared utilities and configuration."""
