"""Command bodies for the hotpatch CLI. Each run_* returns a process exit code."""
