"""Utility modules for the orchestrator.

Key Components:
    - async_subprocess: Structured, shell-free command execution
    - logging_config: structlog setup with secret redaction
"""
