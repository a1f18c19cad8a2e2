"""Reference image preparation.

Reference images are sent to the generation provider inline as data URIs.
"""

import base64
import logging
from typing import List

from genbatch.domain.interfaces.artifact_sink import ArtifactSink, FetchedMedia
from genbatch.domain.models.common import DataUri
from genbatch.domain.models.errors import ProviderError

logger = logging.getLogger(__name__)


def to_data_uri(media: FetchedMedia) -> DataUri:
    encoded = base64.b64encode(media.content).decode("ascii")
    return DataUri(f"data:{media.mime_type};base64,{encoded}")


async def prepare_reference_images(urls: List[str], sink: ArtifactSink) -> List[DataUri]:
    """Fetches every base reference image and encodes it as a data URI.

    Raises:
        ProviderError: If any reference image cannot be downloaded; the run
            cannot produce consistent output without its full reference set.
    """
    prepared: List[DataUri] = []
    for index, url in enumerate(urls, start=1):
        logger.info(f"Converting reference image {index}/{len(urls)} to data URI...")
        try:
            media = await sink.fetch(url)
        except ProviderError as e:
            raise ProviderError(f"Failed to download reference image {index}: {e}", e.kind, e.status_code) from e
        prepared.append(to_data_uri(media))
    logger.info(f"Prepared {len(prepared)} base reference images")
    return prepared
