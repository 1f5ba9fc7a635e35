"""Entry point that wires a transcript worker run from configuration."""

import logging
from typing import Optional

from ..config import Config
from ..db.factory import create_repository_from_config
from ..db.repository import TranscriptRepositoryInterface
from ..providers.base import TranscriptProviderInterface
from ..providers.deepgram_fallback import DeepgramFallbackService
from ..providers.factory import create_fallback_service, create_provider
from ..storage import TranscriptStorageInterface, create_storage
from .config import TranscriptWorkerConfig
from .state import RunState
from .workers.base import RunSummary
from .workers.transcript import TranscriptWorker, new_job_id

logger = logging.getLogger(__name__)


def run_transcript_worker(
    config: TranscriptWorkerConfig,
    app_config: Optional[Config] = None,
    repository: Optional[TranscriptRepositoryInterface] = None,
    provider: Optional[TranscriptProviderInterface] = None,
    storage: Optional[TranscriptStorageInterface] = None,
    fallback_service: Optional[DeepgramFallbackService] = None,
    state: Optional[RunState] = None,
) -> RunSummary:
    """
    Validate the configuration and run the transcript worker once.

    Collaborators not passed in are built from `app_config` (or a fresh
    `Config()`); a repository created here is closed before returning.

    Parameters:
        config (TranscriptWorkerConfig): Run parameters.
        app_config (Optional[Config]): Process settings for building collaborators.
        repository, provider, storage, fallback_service: Optional pre-built collaborators.
        state (Optional[RunState]): Shared run state to inspect after the run.

    Returns:
        RunSummary: Counts and per-episode outcomes of the run.

    Raises:
        ConfigurationError: If the configuration is invalid.
        sqlalchemy.exc.SQLAlchemyError: If the run lock cannot be queried.
    """
    config.validate()

    if not config.enabled:
        logger.info("Transcript worker is disabled (TRANSCRIPT_WORKER_ENABLED=false)")
        return RunSummary(job_id=new_job_id())

    app_config = app_config or Config()
    owns_repository = repository is None
    if repository is None:
        repository = create_repository_from_config(app_config)

    try:
        if provider is None:
            provider = create_provider(config.tier, app_config)
        if storage is None:
            storage = create_storage(app_config)
        if fallback_service is None and config.enable_fallback:
            fallback_service = create_fallback_service(
                app_config, config.max_fallback_file_size_mb
            )

        worker = TranscriptWorker(
            config=config,
            repository=repository,
            provider=provider,
            storage=storage,
            fallback_service=fallback_service,
            state=state,
        )
        return worker.run()
    finally:
        if owns_repository:
            repository.close()
