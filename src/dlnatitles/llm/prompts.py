"""Prompt templates for title normalization."""

TITLE_USER = """\
Normalize the following file name into an Infuse-compatible title. \
For movies use 'Movie Title (Year)'. \
For TV episodes use 'Show Title SXXEYY'. \
Return only the normalized title without extension. \
File name: {path}"""


def title_messages(path: str) -> list[dict[str, str]]:
    """Build the chat messages asking for the normalized title of *path*."""
    return [{"role": "user", "content": TITLE_USER.format(path=path)}]


def clean_response(response: str | None) -> str:
    """Reduce a raw reply to the bare title line.

    Strips surrounding whitespace and matching quotes, keeps the first
    non-empty line only.
    """
    if not response:
        return ""
    lines = [line.strip() for line in response.strip().splitlines() if line.strip()]
    if not lines:
        return ""
    title = lines[0]
    if len(title) >= 2 and title[0] == title[-1] and title[0] in "\"'`":
        title = title[1:-1].strip()
    return title
