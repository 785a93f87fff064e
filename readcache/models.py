"""
Article records and their JSON encoding for the store.
"""

import json
from dataclasses import dataclass

from .exceptions import DecodeError


@dataclass
class ArticleRecord:
    url: str
    title: str = ""
    content: str = ""
    error_message: str = ""  # Set only on degraded records

    @classmethod
    def failed(cls, url: str, error: object) -> "ArticleRecord":
        """Build a degraded record carrying an error and no content."""
        message = str(error) or error.__class__.__name__
        return cls(url=url, error_message=message)

    @property
    def is_error(self) -> bool:
        return bool(self.error_message)

    @property
    def is_cacheable(self) -> bool:
        return not self.error_message


# Field names written by older deployments, accepted on decode
_LEGACY_FIELDS = {
    "URL": "url",
    "Title": "title",
    "Content": "content",
    "ErrMsg": "errorMessage",
}


def encode_record(record: ArticleRecord) -> str:
    """Serialize a record to the JSON stored under its article key."""
    return json.dumps({
        "url": record.url,
        "title": record.title,
        "content": record.content,
        "errorMessage": record.error_message,
    }, ensure_ascii=False)


def decode_record(data: str | bytes, url: str) -> ArticleRecord:
    """
    Deserialize a stored payload.

    Args:
        data: Raw value read from the store
        url: Lookup key, used when the payload has no url of its own

    Raises:
        DecodeError: If the payload is not a JSON object of string fields
    """
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Stored article for {url} is not valid UTF-8: {e}") from e

    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Stored article for {url} is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise DecodeError(f"Stored article for {url} is not a JSON object")

    fields = {}
    for key, value in payload.items():
        name = _LEGACY_FIELDS.get(key, key)
        if name not in ("url", "title", "content", "errorMessage"):
            continue
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise DecodeError(f"Stored article for {url} has non-string field '{key}'")
        fields[name] = value

    return ArticleRecord(
        url=fields.get("url") or url,
        title=fields.get("title", ""),
        content=fields.get("content", ""),
        error_message=fields.get("errorMessage", ""),
    )
