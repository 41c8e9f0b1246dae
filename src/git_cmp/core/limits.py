from __future__ import annotations

# rendered diffs returned to MCP clients are cut at this many lines
MAX_LINES_TEXT = 5_000
