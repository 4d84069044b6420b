"""
modpack Test Suite.

Unit tests for classification, manifest synthesis, writers and the
packaging pipeline.
"""
