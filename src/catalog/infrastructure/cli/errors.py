"""Translate domain errors into click exceptions with kind-specific exit codes."""

from __future__ import annotations

import click

from catalog.domain.exceptions import DomainException, ErrorKind

EXIT_CODES = {
    ErrorKind.INVALID_INPUT: 2,
    ErrorKind.PRODUCT_NOT_FOUND: 3,
    ErrorKind.INSUFFICIENT_STOCK: 4,
    ErrorKind.INTERNAL_FAILURE: 5,
}


class CatalogCliError(click.ClickException):

    def __init__(self, error: DomainException) -> None:
        lines = [f"[{error.kind.value}] {error.message}"]
        for detail in error.details:
            field = detail.get("field") or "(input)"
            lines.append(f"  {field}: {detail.get('message', '')}")
        super().__init__("\n".join(lines))
        self.exit_code = EXIT_CODES[error.kind]
        self.error = error
