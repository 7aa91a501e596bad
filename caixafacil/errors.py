"""Exception classes for CaixaFácil."""


class CaixaFacilError(Exception):
    """Base exception for CaixaFácil."""


class StatementError(CaixaFacilError):
    """The statement cannot be imported at all (bad file, missing columns, no rows)."""


class PersistenceError(CaixaFacilError):
    """The bulk insert was rejected; nothing from the run was stored."""


class CategorizationError(CaixaFacilError):
    """A categorization batch failed or returned an unusable answer."""


class AggregatorError(CaixaFacilError):
    """An Open Banking aggregator request failed."""
