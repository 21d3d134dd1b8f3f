"""Document blob storage."""
