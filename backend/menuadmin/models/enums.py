"""Enum types for the menu admin data model."""

import enum


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    STORE_ADMIN = "STORE_ADMIN"


class StorageType(str, enum.Enum):
    LOCAL = "local"
    S3 = "s3"
