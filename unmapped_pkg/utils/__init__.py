"""Format, path, compression and record-count helpers."""
