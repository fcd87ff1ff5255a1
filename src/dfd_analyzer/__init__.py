"""Data-flow diagrams for React, Vue and Svelte components."""

__version__ = "0.3.0"
