"""
Device interaction workflows. Each workflow runs as one task on the InteractionSerializer
and resolves rather than raising for per-device errors.
"""
