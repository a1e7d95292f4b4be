"""Bundled data files for stalectl."""
