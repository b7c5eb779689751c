from pixelbatch.application.use_cases.batch_transform import BatchTransformUseCase
from pixelbatch.infrastructure.adapters.bundles.transform import (
    get_transform_adapter_bundle,
)


def get_batch_transform_use_case() -> BatchTransformUseCase:
    """Compose a fresh BatchTransformUseCase per request.

    Each request gets its own use case, so filename registries and batch
    state never leak between concurrent uploads.
    """
    adapters = get_transform_adapter_bundle()
    return BatchTransformUseCase(adapters)
