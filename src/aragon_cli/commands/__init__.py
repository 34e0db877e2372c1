"""CLI commands (`run`, `apps`) and the publish step they build on."""
