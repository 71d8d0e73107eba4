"""SQLite storage for the pending queue and ticket status."""
