"""apitrace command-line interface."""
