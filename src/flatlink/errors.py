# src/flatlink/errors.py
"""Fatal build errors.

Every error here is deterministic: it describes a defect in the compiled
units, the ordering policy, or the declared resources. None are retried and
none are downgraded to warnings. Each carries the pipeline stage, the unit
it concerns (if any) and the offending statement (if any) so `cli.main`
can print a diagnostic that points at the source.
"""


class BundleError(RuntimeError):
    """Base class for all fatal build errors."""

    stage = "build"
    code = 1

    def __init__(
        self,
        message: str,
        *,
        unit: str | None = None,
        statement: str | None = None,
    ) -> None:
        self.message = message
        self.unit = unit
        self.statement = statement
        super().__init__(self._render())

    def _render(self) -> str:
        where = f" in unit '{self.unit}'" if self.unit else ""
        text = f"[{self.stage}]{where}: {self.message}"
        if self.statement:
            text += f"\n    {self.statement.strip()}"
        return text


class ReadError(BundleError):
    """A compiled artifact for a scheduled unit is missing or unreadable."""

    stage = "read"


class TranslationError(BundleError):
    """An import targets something that is not a recognized native namespace."""

    stage = "translate"


class UnresolvedReferenceError(BundleError):
    """A cross-unit reference cannot be expressed as a bare global name."""

    stage = "rewrite"


class NameCollisionError(BundleError):
    """Two units would declare the same bare name in the flattened scope."""

    stage = "link"

    def __init__(self, name: str, first: str, second: str) -> None:
        self.name = name
        self.first = first
        self.second = second
        super().__init__(
            f"'{name}' is declared by both '{first}' and '{second}'",
            unit=second,
        )


class OrderViolation(BundleError):
    """The ordering policy schedules a unit before one it depends on."""

    stage = "order"

    def __init__(
        self,
        unit: str,
        dependency: str | None,
        reason: str,
        *,
        suggestion: list[str] | None = None,
    ) -> None:
        self.dependency = dependency
        self.suggestion = suggestion
        message = reason
        if suggestion:
            message += f"\n    suggested order: {', '.join(suggestion)}"
        super().__init__(message, unit=unit)

    @property
    def pair(self) -> tuple[str, str | None]:
        """(offending unit, dependency it was scheduled before)."""
        return (self.unit or "", self.dependency)


class ResourceCopyError(BundleError):
    """A declared resource source is missing or could not be copied."""

    stage = "resources"
