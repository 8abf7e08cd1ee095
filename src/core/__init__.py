"""Core domain package for warden.

Core contains classification, deduplication, notification bookkeeping and
the expiry/delete pipeline without any Telegram-specific code, keeping the
business logic portable and testable with fakes.
"""
