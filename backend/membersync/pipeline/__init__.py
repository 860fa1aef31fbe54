"""
Sync pipeline — step-based orchestrator for data source imports.

Runs raw rows through clean_rows → map_fields → route_rows with
per-step logging and error handling, and records every run in a
sync log.  Import from the submodules (engine, context, step, errors).
"""
