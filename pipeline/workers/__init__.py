"""
Pipeline worker components for running external commands.
"""

from .executor import CommandExecutor, execute, execute_with_custom_timeout

__all__ = [
    'CommandExecutor',
    'execute',
    'execute_with_custom_timeout',
]
