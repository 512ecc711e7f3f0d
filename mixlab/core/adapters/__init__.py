"""Adapters between the analysis core and the outside world."""

from .loader import AudioLoader, find_audio_files

__all__ = ['AudioLoader', 'find_audio_files']
