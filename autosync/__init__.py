"""In-process automation engine for periodic marketplace maintenance work."""
