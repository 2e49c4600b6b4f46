"""
REPSENSE Threading Module
"""

from .frame_worker import FrameWorker

__all__ = [
    'FrameWorker',
]
