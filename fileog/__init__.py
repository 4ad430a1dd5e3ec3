"""
fileog
======

A file organizer that sorts a directory into categories.

Features:
- Deterministic category rules (extension, name, regex, MIME type)
- Optional classification by a language model (OpenAI, Claude, Ollama)
- Move, copy, rename and delete batches with full undo

History and deleted-file backups are kept locally.
"""

__version__ = "0.1.0"
