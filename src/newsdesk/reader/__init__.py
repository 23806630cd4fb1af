"""Item queries and per-item reader state."""
