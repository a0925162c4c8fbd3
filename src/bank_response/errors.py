class PipelineError(Exception):
    """Base class for fatal pipeline errors."""


class DataSourceError(PipelineError):
    """The relational source could not be reached."""


class SchemaError(PipelineError):
    """A column is missing or holds a value outside its fixed level set."""


class DegenerateDataError(PipelineError):
    """The training rows cannot support a meaningful model fit."""


class ExportError(PipelineError):
    """An artifact could not be written."""
