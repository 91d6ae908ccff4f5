"""tapi errors - typed failures raised by the import/export layer."""


class TapiError(Exception):
    """Base error. `source` names the component that raised it."""

    source = "tapi"

    def __init__(self, message: str, source: str | None = None):
        self.message = message
        if source is not None:
            self.source = source
        super().__init__(message)


class ParseError(TapiError):
    """Malformed cURL command text."""

    source = "curl"


class FormatError(TapiError):
    """Input matches none of the known import shapes."""

    source = "detector"


class SchemaError(TapiError):
    """A recognised format is missing something it cannot do without."""


class ResolutionError(TapiError):
    """Base or relative URL text could not be parsed."""

    source = "resolver"


class ImportFileError(TapiError):
    """The import source could not be read."""

    source = "importer"


class StorageError(TapiError):
    """A stored collection or environment is missing or unwritable."""

    source = "storage"
