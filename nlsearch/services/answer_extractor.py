"""
Answer extraction: pick the generated search query out of a free-form Deep Search answer.

The model is asked to reply with the raw query only, but answers still arrive with
explanatory prose, code fences or quotes around it. This is a line heuristic, not a
parser: the query is the last line containing a colon that is not an explanatory
sentence starting with "For " or "Based ".
"""

EXPLANATION_PREFIXES = ("For ", "Based ")


def _strip_formatting(line: str) -> str:
    """Drop surrounding backticks, then at most one matching pair of quotes."""
    line = line.strip("`")
    if len(line) >= 2 and line[0] == line[-1] and line[0] in "\"'":
        return line[1:-1]
    return line


def _looks_like_query(line: str) -> bool:
    return ":" in line and not line.startswith(EXPLANATION_PREFIXES)


def extract_query(answer: str) -> str:
    """
    Return the single line of `answer` most likely to be the generated query.

    Scans from the last line backward and takes the first line that contains ":" and
    does not start with "For " or "Based ". Without such a line, falls back to the
    last line. Empty (whitespace-only) input is returned as given.
    """
    trimmed = answer.strip()
    if not trimmed:
        return answer
    lines = trimmed.split("\n")

    for raw in reversed(lines):
        line = raw.strip()
        if line and _looks_like_query(line):
            return _strip_formatting(line)

    return _strip_formatting(lines[-1].strip())
