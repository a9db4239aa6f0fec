"""
batchscribe - operator backend for batch transcription runs.

Drives an external transcription script once per input folder, one folder
at a time, with live log relay, cooperative pause and forceful stop.
"""

__version__ = "0.3.0"
