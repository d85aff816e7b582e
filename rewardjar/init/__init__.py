# rewardjar/init/__init__.py

"""
Application Initialization Package

This package contains modular initialization functions for the Flask application.
Each module handles a specific aspect of application setup.
"""

from rewardjar.init.logging import init_logging
from rewardjar.init.cli import init_cli_commands

__all__ = [
    'init_logging',
    'init_cli_commands',
]
