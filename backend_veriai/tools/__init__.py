"""Command-line tools: manual evaluation trigger and result-store queries."""
