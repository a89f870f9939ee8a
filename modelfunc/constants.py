"""Shared constants."""

from datetime import timedelta, timezone

# Link entries outlive record entries; they are only id hints
LINK_TTL_SECONDS = 7 * 24 * 3600

# Soft-delete timestamps are always China Standard Time
CST = timezone(timedelta(hours=8), "CST")

PRIMARY_KEY_SEGMENT = "id"
