from __future__ import annotations

from typing import Iterable, Optional, Tuple


class LocalizationError(Exception):
    """Base class for every error that aborts a localization run.

    Row-attributable errors carry the 1-based ``row_number`` and an optional
    ``column_number`` of the cell that should receive ``note``.
    """

    def __init__(
        self,
        message: str,
        *,
        row_number: Optional[int] = None,
        column_number: Optional[int] = None,
        note: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.row_number = row_number
        self.column_number = column_number
        self.note = note


class ConfigError(LocalizationError, ValueError):
    pass


class SheetStructureError(LocalizationError):
    pass


class DuplicateLabelError(LocalizationError):
    def __init__(self, label: str, **kwargs) -> None:
        kwargs.setdefault("note", f'Duplicate label "{label}". Labels must be unique.')
        super().__init__(f'Duplicate label "{label}"', **kwargs)
        self.label = label


class MetaParseError(LocalizationError):
    pass


class StoreError(LocalizationError):
    """The spreadsheet backend rejected or failed a request."""


# Client errors -----------------------------------------------------------------
class ClientError(LocalizationError):
    """A failed call to the translation backend; retried by the client."""


class HttpError(ClientError):
    def __init__(self, status: int, body_excerpt: str) -> None:
        super().__init__(f"API HTTP {status}: {body_excerpt}")
        self.status = status
        self.body_excerpt = body_excerpt


class ParseError(ClientError):
    pass


class TransportError(ClientError):
    pass


# Response validation errors ----------------------------------------------------
class ResponseValidationError(LocalizationError):
    """Structurally wrong response; retrying would not fix it."""


class MalformedResponse(ResponseValidationError):
    pass


class MissingLocalizationObject(ResponseValidationError):
    pass


class DuplicateLabelInResponse(ResponseValidationError, DuplicateLabelError):
    def __init__(self, label: str, *, row_number: Optional[int] = None) -> None:
        DuplicateLabelError.__init__(
            self,
            label,
            row_number=row_number,
            note=f'API response repeats label "{label}".',
        )
        self.args = (f'Response contains duplicate label "{label}"',)


class MissingTranslation(ResponseValidationError):
    pass


class IncompleteTranslation(MissingTranslation):
    def __init__(self, label: str, missing: Iterable[str], *, row_number: int) -> None:
        self.label = label
        self.missing: Tuple[str, ...] = tuple(missing)
        codes = ", ".join(self.missing)
        super().__init__(
            f'label "{label}": API did not return translations for: {codes}',
            row_number=row_number,
            note=f"Missing languages: {codes}",
        )
