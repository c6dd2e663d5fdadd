from tests.image_fixtures import (  # noqa: F401
    blob_storage,
    controller,
    image_service,
    noisy_image,
    record_store,
)
