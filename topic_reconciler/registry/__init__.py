"""
Embedding Registry Module.

Optional, caller-owned store of topic vectors reused across runs.
"""
