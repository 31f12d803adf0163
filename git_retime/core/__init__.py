"""Core time engine, orchestration and configuration for git-retime."""
