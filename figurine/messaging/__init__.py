"""Messaging boundary.

Scope:
    - `messenger`: outbound delivery contract implemented by front-ends.
    - `extraction`: image-reference extraction and validation for inbound
      payloads.

Non-goals:
    - No transport implementation; front-ends own delivery.
    - No image download or decoding.
"""
