"""
omnideps - build dependency tracking with OmniBOR provenance.

Records the files a build step reads, writes them as Make rules and as
gitoid-addressed BOM documents with companion metadata.
"""

__version__ = "1.0.0"
