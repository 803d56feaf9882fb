"""
longscribe package.

Design intent:
- Transcribe recordings longer than a remote speech-to-text API accepts in one request.
- Keep planning/merging (asr/) independent from tool and network adapters (internal_core/).
"""
