from typing import Any
from pydantic import ValidationError


class AddressMapperError(Exception):
    """Base class for every error raised by address_mapper."""


class ParseError(AddressMapperError):
    """The row source (or a preload/import file) could not be read.

    Fatal to the batch: nothing is processed when this is raised.
    """
    def __init__(self, source: str, reason: str, errors: list[dict[str, Any]] | None = None, original: Exception | None = None):
        self.source = source
        self.reason = reason
        self.errors = errors or []
        self.original = original
        super().__init__(f"Could not parse '{source}': {reason}")

    @classmethod
    def from_validation(cls, source: str, exc: ValidationError) -> "ParseError":
        errors = [dict(e) for e in exc.errors()]
        return cls(source, f"{len(errors)} invalid entries", errors=errors, original=exc)

    def summary(self, limit: int = 5) -> str:
        """Human-readable summary of the first few validation issues."""
        lines = []
        for err in self.errors[:limit]:
            loc = ".".join(str(p) for p in err.get("loc", []))
            lines.append(f"- {loc}: {err.get('msg')} ({err.get('type')})")
        if len(self.errors) > limit:
            lines.append(f"... ({len(self.errors) - limit} more)")
        return "\n".join(lines)


class ProviderError(AddressMapperError):
    """The geocoding provider answered with a non-success status."""
    def __init__(self, query: str, status_code: int | None, body_snippet: str = ""):
        self.query = query
        self.status_code = status_code
        self.body_snippet = body_snippet
        super().__init__(f"Geocoding error {status_code} for '{query}'")


class NetworkError(AddressMapperError):
    """The geocoding provider could not be reached."""
    def __init__(self, query: str, cause: Exception):
        self.query = query
        self.cause = cause
        super().__init__(f"Network failure geocoding '{query}': {cause}")
