"""Authentication module for the backup agent."""

from .google_credentials import DRIVE_SCOPES, load_credentials, build_drive_service

__all__ = ["DRIVE_SCOPES", "load_credentials", "build_drive_service"]
