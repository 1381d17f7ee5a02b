def truncate_text(
    text: str,
    max_chars: int = 300,
    max_newlines: int = 20,
) -> str:
    ellipsis = "..."
    original = text

    # Truncate by `max_newlines`
    lines = text.splitlines()
    text = '\n'.join(lines[:max_newlines])

    # Truncate by `max_chars`
    text = text[:max_chars - len(ellipsis)]

    text = text.strip()

    # Add the ellipsis if needed
    text = text if text == original else text + ellipsis

    return text


def last_path_segment(path: str) -> str:
    """
    `/community/123` -> `123`. A trailing slash yields an empty segment.
    """
    return path.split('/')[-1]
