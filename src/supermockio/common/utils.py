"""
SuperMockio Common Utilities

Shared helpers for parsing uploaded documents and AI replies.
"""

import re
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from ..errors import InvalidDocument

_CODE_FENCE_PATTERN = re.compile(r'```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```', re.DOTALL)


def strip_code_fences(text: str) -> str:
    """
    Remove markdown code-fence wrappers from a model reply.

    Handles ```json ... ``` and bare ``` ... ``` blocks. When the reply holds
    a fenced block, the content of the first block is returned; otherwise any
    stray fence markers are dropped.

    Args:
        text: Raw reply text

    Returns:
        Reply text without fences, stripped of surrounding whitespace
    """
    if not text:
        return ''

    match = _CODE_FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()

    return re.sub(r'```[a-zA-Z0-9_-]*', '', text).strip()


def preview(text: str, limit: int = 100) -> str:
    """Shorten text for log lines."""
    if text is None:
        return ''
    return text[:limit] + ('...' if len(text) > limit else '')


def parse_openapi_document(raw: Union[str, bytes]) -> Dict[str, Any]:
    """
    Parse an uploaded OpenAPI document.

    YAML is a superset of JSON, so both formats go through the YAML loader.

    Args:
        raw: Document text or bytes

    Returns:
        Parsed document tree

    Raises:
        InvalidDocument: If the text is not YAML/JSON or lacks info/paths
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode('utf-8')
        except UnicodeDecodeError as e:
            raise InvalidDocument(f"Document is not valid UTF-8: {e}")

    try:
        document = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise InvalidDocument(f"Document is not valid YAML or JSON: {e}")

    if not isinstance(document, dict):
        raise InvalidDocument(
            f"Expected an OpenAPI document object, got {type(document).__name__}"
        )

    info = document.get('info')
    if not isinstance(info, dict) or not info.get('title') or info.get('version') is None:
        raise InvalidDocument("OpenAPI document must declare info.title and info.version")

    if not isinstance(document.get('paths', {}), dict):
        raise InvalidDocument("OpenAPI document 'paths' must be an object")

    return document


def load_openapi_file(file_path: str) -> Dict[str, Any]:
    """
    Load an OpenAPI document from disk.

    Raises:
        FileNotFoundError: If the file doesn't exist
        InvalidDocument: If the content is not a usable document
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"OpenAPI file not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        return parse_openapi_document(f.read())
