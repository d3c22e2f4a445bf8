"""Prompt construction package.

Exports style-table prompt builders used by core orchestration.
"""
