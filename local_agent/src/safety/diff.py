# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Preview diffs for proposed file writes.

This is a deliberately approximate line diff: after a mismatch it looks ahead
at most ``LOOKAHEAD`` lines on either side to resynchronise, and otherwise
emits a delete/insert pair and moves on. It always terminates in a single
linear pass, which matters more for a confirmation dialog than finding the
minimal edit script.
"""

LOOKAHEAD = 3
CONTEXT_LINES = 2
MAX_DIFF_LINES = 50


def _raw_diff(old_lines: list[str], new_lines: list[str]) -> list[str]:
    diff: list[str] = []
    i, j = 0, 0
    while i < len(old_lines) or j < len(new_lines):
        if i >= len(old_lines):
            diff.append(f"+{new_lines[j]}")
            j += 1
        elif j >= len(new_lines):
            diff.append(f"-{old_lines[i]}")
            i += 1
        elif old_lines[i] == new_lines[j]:
            diff.append(f" {old_lines[i]}")
            i += 1
            j += 1
        else:
            for k in range(1, LOOKAHEAD + 1):
                # Lines were removed from the old content
                if i + k < len(old_lines) and old_lines[i + k] == new_lines[j]:
                    diff.extend(f"-{line}" for line in old_lines[i : i + k])
                    i += k
                    break
                # Lines were inserted into the new content
                if j + k < len(new_lines) and old_lines[i] == new_lines[j + k]:
                    diff.extend(f"+{line}" for line in new_lines[j : j + k])
                    j += k
                    break
            else:
                diff.append(f"-{old_lines[i]}")
                diff.append(f"+{new_lines[j]}")
                i += 1
                j += 1
    return diff


def generate_diff(old_content: str, new_content: str, path: str) -> str:
    """Produce a compact unified-style diff of two file contents.

    Unchanged lines are kept only when they sit within ``CONTEXT_LINES`` of a
    change, and the output is capped at ``MAX_DIFF_LINES`` lines (headers
    included) followed by a truncation marker.
    """
    body = _raw_diff(old_content.split("\n"), new_content.split("\n"))
    diff = [f"--- {path}", f"+++ {path}", *body]

    kept = []
    for idx, line in enumerate(diff):
        if idx < 2 or not line.startswith(" "):
            kept.append(line)
            continue
        nearby = diff[max(2, idx - CONTEXT_LINES) : min(len(diff), idx + CONTEXT_LINES + 1)]
        if any(n.startswith(("+", "-")) for n in nearby):
            kept.append(line)

    text = "\n".join(kept[:MAX_DIFF_LINES])
    if len(kept) > MAX_DIFF_LINES:
        text += "\n... (truncated)"
    return text
