"""Intermediate facts shared by the analyzers and the builder."""
