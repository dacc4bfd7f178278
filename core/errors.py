class DataPipelineError(Exception):
    """Base class for every error raised by the pipeline and query engine"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(DataPipelineError):
    """Job, conversation or stored object does not exist"""
    status_code = 404


class ValidationError(DataPipelineError):
    """Uploaded content is empty or has the wrong format"""
    status_code = 400


class FileTooLargeError(ValidationError):
    status_code = 413


class ParseError(DataPipelineError):
    """Tabular content could not be parsed"""
    status_code = 422


class TranslationError(DataPipelineError):
    """Natural-language query could not be turned into a structured query"""
    status_code = 502


class ExecutionError(DataPipelineError):
    """Structured query could not be applied to the dataset"""
    status_code = 500


class DataLoadError(ExecutionError):
    """No storage key variant yielded the dataset"""
    status_code = 404


class CacheError(DataPipelineError):
    status_code = 500


class QueueFullError(DataPipelineError):
    status_code = 503


class CapabilityError(DataPipelineError):
    """The external NL capability failed, timed out or replied with garbage"""
    status_code = 502


class ObjectNotFoundError(NotFoundError):
    def __init__(self, bucket: str, key: str):
        super().__init__(f"Object not found: {bucket}/{key}")
        self.bucket = bucket
        self.key = key
