"""Line diffing for prompt versions."""

from __future__ import annotations

from difflib import SequenceMatcher
from typing import Any


class LineDiffer:
    """Positional line-by-line comparison between two prompt texts.

    Line ``i`` of the old text is compared with line ``i`` of the new text; this
    is not an LCS diff, so an inserted line shows every following line as changed.
    """

    def diff(self, old_text: str, new_text: str) -> dict[str, Any]:
        old_lines = old_text.split("\n")
        new_lines = new_text.split("\n")

        lines: list[dict[str, Any]] = []
        for i in range(max(len(old_lines), len(new_lines))):
            old_line = old_lines[i] if i < len(old_lines) else ""
            new_line = new_lines[i] if i < len(new_lines) else ""

            if old_line == new_line:
                lines.append({"type": "unchanged", "content": old_line, "line_number": i + 1})
                continue
            # Blank lines on either side are not reported as removed/added
            if old_line:
                lines.append({"type": "removed", "content": old_line, "line_number": i + 1})
            if new_line:
                lines.append({"type": "added", "content": new_line, "line_number": i + 1})

        counts = {
            kind: sum(1 for line in lines if line["type"] == kind)
            for kind in ("added", "removed", "unchanged")
        }
        return {
            "lines": lines,
            "summary": counts,
            "similarity": round(SequenceMatcher(None, old_text, new_text).ratio(), 2),
        }

    def human_readable(self, diff_result: dict[str, Any]) -> str:
        """Format a diff result as unified-style text."""
        prefix = {"added": "+ ", "removed": "- ", "unchanged": "  "}
        summary = diff_result["summary"]
        lines = [
            f"Summary: {summary['added']} added, {summary['removed']} removed, "
            f"{summary['unchanged']} unchanged (similarity: {diff_result['similarity']})",
            "",
        ]
        lines.extend(prefix[line["type"]] + line["content"] for line in diff_result["lines"])
        return "\n".join(lines)
