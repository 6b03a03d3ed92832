"""Core library for sessionwatch (no CLI or presentation dependencies)."""
