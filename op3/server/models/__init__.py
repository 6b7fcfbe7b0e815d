"""Data models for the OP3 backend."""
