import re
from urllib.parse import urlparse


def ask_user(prompt: str) -> str:
    """
    Asks the user for input and returns the response.
    """
    print(prompt, end="")
    return input()


def path_slug(url: str) -> str:
    """
    Turns the path of a URL into a filesystem-safe slug.

    Every run of characters other than word characters, '/' and '-' becomes a
    single '-'. Leading and trailing slashes are removed, so the root path
    yields an empty slug.

    Example:
        >>> path_slug("https://react.dev/learn/thinking-in.react?x=1")
        'learn/thinking-in-react'
    """
    slug = re.sub(r"[^\w/-]+", "-", urlparse(url).path)
    return slug.strip("/")
