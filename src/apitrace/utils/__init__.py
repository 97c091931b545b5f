"""apitrace utilities."""
