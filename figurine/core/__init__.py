"""Core orchestration package.

Composition:
    - `engine`: submission pipeline, resumption path, reset/status/shutdown.
    - `polling`: per-job status polling state machine.
    - `job_store`, `gate`, `wait_register`: engine-owned state.
    - `scheduler`: cancellable delayed callbacks.
    - `models`, `errors`: shared data contracts and error taxonomy.

Package import itself is side-effect free.
"""
