"""
Transcript module boundary for longscribe.

Design intent:
- Plan overlapping chunk windows over a recording.
- Merge chunk transcripts back onto one timeline without duplicated boundary speech.
- Persist merged transcripts through pluggable result sinks.
"""
