"""Diff text helpers.

Diffs produced here are attached to backend requests for traceability only;
change statistics come from the engine's own heuristics.
"""

# Only the head of a file is sampled when looking for binary content
BINARY_SAMPLE_SIZE = 8192
CONTROL_CHAR_RATIO = 0.3
TEXT_CONTROL_CHARS = frozenset("\t\n\r")


def format_new_file_diff(file_path: str, content: str) -> str:
    """Format a git-style diff showing every line of ``content`` as added.

    Used for the first commit of a file, where ``git diff`` has no base.
    """
    lines = content.split("\n")
    header = [
        f"diff --git a/{file_path} b/{file_path}",
        "new file mode 100644",
        "index 0000000..1111111",
        "--- /dev/null",
        f"+++ b/{file_path}",
        f"@@ -0,0 +1,{len(lines)} @@",
    ]
    return "".join(f"{line}\n" for line in header) + "".join(f"+{line}\n" for line in lines)


def is_binary_content(content: str | bytes | None) -> bool:
    """Return True when ``content`` looks like binary data.

    A NUL character, or a sample where more than 30% of the characters are
    control characters other than tab and line breaks, counts as binary.
    """
    if not content:
        return False

    if isinstance(content, bytes):
        content = content[:BINARY_SAMPLE_SIZE].decode("latin-1")
    sample = content[:BINARY_SAMPLE_SIZE]

    if "\x00" in sample:
        return True

    control = sum(1 for char in sample if ord(char) < 32 and char not in TEXT_CONTROL_CHARS)
    return control / len(sample) > CONTROL_CHAR_RATIO


__all__ = [
    "format_new_file_diff",
    "is_binary_content",
]
