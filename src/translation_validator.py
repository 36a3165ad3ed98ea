"""Checks applied to source files and translated values."""
import re
from collections import Counter
from typing import List

# Placeholders like {0}, {1}, {name}
PLACEHOLDER_REGEX = re.compile(r'\{([^{}]+)\}')

# 'Ã' followed by a character in 0x80-0xFF is UTF-8 text that was decoded as
# latin-1 or cp1252 somewhere along the way.
MOJIBAKE_REGEX = re.compile(r'Ã[\x80-\xff]')


def check_placeholder_parity(base_string: str, target_string: str) -> bool:
    """
    True if both strings carry the same placeholders the same number of times.

    Order is free, since translations may move placeholders around.

    Args:
        base_string: The source value.
        target_string: The translated value.
    """
    return Counter(PLACEHOLDER_REGEX.findall(base_string)) == Counter(PLACEHOLDER_REGEX.findall(target_string))


def check_encoding_and_mojibake(file_path: str) -> List[str]:
    """
    Look for encoding damage in a file before it is translated.

    Returns:
        List[str]: Problems found. Empty when the file is clean UTF-8.
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            content = f.read()
    except UnicodeDecodeError:
        return [f"File '{file_path}' is not a valid UTF-8 file."]
    except OSError as e:
        return [f"Could not read file '{file_path}'. Reason: {e}"]

    problems = []
    if MOJIBAKE_REGEX.search(content):
        problems.append(f"Potential mojibake detected in '{file_path}', e.g. 'Ã¼' where 'ü' was meant.")
    if '\uFFFD' in content:
        problems.append(f"File '{file_path}' contains the Unicode replacement character (U+FFFD) "
                        f"left behind by an earlier decoding error.")
    return problems
