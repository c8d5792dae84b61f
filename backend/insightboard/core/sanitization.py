"""
Input sanitization utilities for user-provided data.
"""
import re


def sanitize_filename(filename: str, max_length: int = 255) -> str:
    """
    Sanitize filename to prevent path traversal and log injection.

    Args:
        filename: Original filename
        max_length: Maximum length of sanitized filename

    Returns:
        Sanitized filename safe for logging and storage
    """
    if not filename:
        return "unknown"

    # Remove path components
    filename = filename.split('/')[-1].split('\\')[-1]

    # Remove control characters and newlines
    filename = re.sub(r'[\x00-\x1f\x7f-\x9f]', '', filename)

    filename = filename.strip('. ')

    if len(filename) > max_length:
        filename = filename[:max_length]

    return filename or "unknown"


def sanitize_for_logging(value: str, max_length: int = 500) -> str:
    """
    Sanitize value for safe logging (prevents log injection).
    """
    if not value:
        return ""

    value = re.sub(r'[\r\n]', ' ', value)
    value = re.sub(r'[\x00-\x1f\x7f-\x9f]', '', value)

    if len(value) > max_length:
        value = value[:max_length] + "..."

    return value


# Patterns that could be read as instructions when echoed into a prompt
_PROMPT_DIRECTIVES = ('SYSTEM:', 'USER:', 'ASSISTANT:', 'IGNORE', 'FORGET', 'NEW INSTRUCTION')


def sanitize_for_prompt(text: str, max_length: int = 100) -> str:
    """
    Sanitize user-provided text before including it in an AI prompt.

    Removes control characters and newlines, limits length and brackets
    directive-looking phrases.
    """
    if not text:
        return ""

    sanitized = ''.join(char for char in text if char.isprintable() and char not in '\n\r\t')

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length] + "..."

    for pattern in _PROMPT_DIRECTIVES:
        sanitized = sanitized.replace(pattern, f'[{pattern}]')

    return sanitized
