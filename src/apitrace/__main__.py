"""Allow ``python -m apitrace``."""

from apitrace.cli.main import app

app()
