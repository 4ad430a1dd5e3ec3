"""Directory scanning module."""

from .scanner import DirectoryScanner, FileDescriptor, ScanOptions

__all__ = [
    "DirectoryScanner",
    "FileDescriptor",
    "ScanOptions",
]
