"""
Command-line front end.

omnidepsctl stands in for a build driver: it feeds dependency lists into the
ledger and writes Make rules, BOM documents and metadata from them.
"""
