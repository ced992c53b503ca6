class PageGenError(Exception):
    pass


class InvalidColorFormat(PageGenError, ValueError):
    pass


class InvalidTemplate(PageGenError, ValueError):
    pass


class UnsupportedSchemaType(PageGenError, ValueError):
    pass


class BarcodeValidationFailed(PageGenError, ValueError):
    pass


class FontResolutionFailed(PageGenError, ValueError):
    pass


class EmbeddingFailed(PageGenError, RuntimeError):
    pass


class BarcodeGenerationFailed(EmbeddingFailed):
    pass


class FontFetchTimeout(EmbeddingFailed, TimeoutError):
    pass
