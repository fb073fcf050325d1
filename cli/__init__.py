"""
Brickstore - Command Line Interface

Entry point: ``brickstore serve | migrate | config``.
"""
from cli.main import app, main

__all__ = ["app", "main"]
