"""
Brickstore - Dependency Wiring

Usage:
    from di import MainModule

    module = MainModule.make(transactor)
"""
from di.module import MainModule, Module

__all__ = ["MainModule", "Module"]
