"""Shared pytest configuration.

Rate limiting is switched off before ``app`` is imported so endpoint tests can
upload as often as they like.
"""
import os

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
