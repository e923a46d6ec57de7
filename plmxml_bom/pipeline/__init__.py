"""Hierarchy linking and the parse-and-link pipeline."""
