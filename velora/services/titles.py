import re

_NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9\s]")

TITLE_MAX_WORDS = 5


def derive_title(text: str, max_words: int = TITLE_MAX_WORDS) -> str | None:
    """
    Build a short conversation title from a user message.

    Punctuation and other non-alphanumeric characters are dropped, the first
    ``max_words`` whitespace-separated words are kept and the first letter is
    upper-cased. Returns None when nothing usable is left.

    >>> derive_title("hello, can you help me?!")
    'Hello can you help me'
    """
    words = _NON_ALPHANUMERIC.sub("", text).split()[:max_words]
    if not words:
        return None

    title = " ".join(words)
    return title[0].upper() + title[1:]


def first_user_content(messages: list[dict]) -> str | None:
    """Content of the first user turn in a chat history."""
    for message in messages:
        if message.get("role") == "user" and message.get("content"):
            return message["content"]
    return None
