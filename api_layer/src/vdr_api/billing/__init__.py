"""Organisation plan billing."""
