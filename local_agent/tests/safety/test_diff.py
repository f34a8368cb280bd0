# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from local_agent.src.safety.diff import MAX_DIFF_LINES, generate_diff


def test_headers_name_the_path():
    diff = generate_diff("a\n", "b\n", "src/x.py")
    lines = diff.split("\n")
    assert lines[0] == "--- src/x.py"
    assert lines[1] == "+++ src/x.py"


def test_single_line_change_is_a_delete_insert_pair():
    diff = generate_diff("one\ntwo\nthree", "one\nTWO\nthree", "f")
    assert diff.split("\n")[2:] == [" one", "-two", "+TWO", " three"]


def test_inserted_lines_resynchronise():
    diff = generate_diff("a\nd", "a\nb\nc\nd", "f")
    assert diff.split("\n")[2:] == [" a", "+b", "+c", " d"]


def test_removed_lines_resynchronise():
    diff = generate_diff("a\nb\nc\nd", "a\nd", "f")
    assert diff.split("\n")[2:] == [" a", "-b", "-c", " d"]


def test_distant_context_is_dropped():
    old = "\n".join(f"line{i}" for i in range(20))
    new = old.replace("line10", "changed")
    body = generate_diff(old, new, "f").split("\n")[2:]
    assert body == [" line8", " line9", "-line10", "+changed", " line11", " line12"]


def test_identical_content_has_only_headers():
    assert generate_diff("same\n", "same\n", "f") == "--- f\n+++ f"


def test_long_diff_is_truncated():
    old = "\n".join(f"old{i}" for i in range(100))
    new = "\n".join(f"new{i}" for i in range(100))
    diff = generate_diff(old, new, "f")
    lines = diff.split("\n")
    assert lines[-1] == "... (truncated)"
    assert len(lines) == MAX_DIFF_LINES + 1
