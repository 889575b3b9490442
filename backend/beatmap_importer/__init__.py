"""
Beatmap importer.

Watches a downloads folder for .osz archives, waits for each download to
finish, reads its metadata and artwork, skips anything already imported and
extracts the rest into the library folder.
"""

__version__ = "0.1.0"
