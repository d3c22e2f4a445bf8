"""Image generation backend package.

Scope:
    Provides the remote generation client, its configuration and the backend
    protocol consumed by core orchestration.

Non-goals:
    - No image download, decoding or Base64 handling.
    - No prompt construction (see `figurine.prompting`).
"""
