"""
gcebake: disposable-VM image builder for Google Compute Engine.

Creates a temporary instance, prepares it over SSH, captures its disk
as a reusable image, and tears the instance down. Every stage runs as
a step in a rollback-capable pipeline.
"""

__version__ = "0.1.0"
__author__ = "gcebake"

BUILDER_ID = "gcebake.googlecompute"
