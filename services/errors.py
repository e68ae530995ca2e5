# services/errors.py
# "Could not look at all" failures. These propagate; a None reading means "looked, found nothing".


class GaugeOcrError(RuntimeError):
    pass


class ImageFetchError(GaugeOcrError):
    pass


class ImageDecodeError(GaugeOcrError):
    pass


class OcrProviderError(GaugeOcrError):
    pass


class CredentialsError(GaugeOcrError):
    pass
