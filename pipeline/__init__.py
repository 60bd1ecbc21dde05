"""
Backup store integrity pipeline modules.
"""

# Import pipeline stages
from .stages.compression import CompressionPipeline
from .stages.mount import MountReconciler
from .workers.executor import CommandExecutor

__all__ = [
    'CompressionPipeline',
    'MountReconciler',
    'CommandExecutor',
]
