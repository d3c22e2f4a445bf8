"""Front-end adapter package.

Architectural role:
- Parses chat command text and routes it to the core engine.
- Provides console and HTTP transports that implement the messenger contract.

No orchestration state lives here.
"""
