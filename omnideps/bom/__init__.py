"""
OmniBOR document generation.

- document: builds the gitoid-listing BOM document for a dependency set
- store: writes documents into the sharded ``objects/`` tree
- metadata: writes the companion provenance record
- note: encodes the ``.note.omnibor`` ELF note carrying document gitoids
"""
