"""dex/ - Venue quoting."""
