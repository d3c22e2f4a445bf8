"""Figurine generation bot.

Architectural role:
    Submits long-running image-generation jobs to a remote asynchronous service,
    tracks each job until a terminal outcome and delivers the result back to the
    requester that started it.

Package split:
    - `core`: orchestration engine (job store, gate, wait register, polling).
    - `image`: remote generation backend and its configuration.
    - `prompting`: style-table prompt assembly.
    - `messaging`: inbound payload extraction and outbound messenger contract.
    - `api`: thin console and HTTP front-ends.
"""
