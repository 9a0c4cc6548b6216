"""Process lifecycle: startup, setup, migration and shutdown.

ProcessOrchestrator owns every long-lived subsystem (config, database, caches,
session store, job manager, streaming service) and brings them up in order.

Startup order:
1. Load the operator config file. Unreadable or invalid config on a configured
   system is fatal (FatalStartupError; the entry point exits with status 1).
2. Logging and optional CPU profiling.
3. Subsystem registry (jobs, downloads, plugin cache, streaming service).
4. Configured system: post_init() (directories, session store, caches, stale
   temp cleanup, database). New system: reduced mode until setup() runs.
5. Security tripwire check, transcoder discovery, DLNA auto-start.

Only the config and database steps can abort startup. Everything else is
logged and the server keeps going in a degraded state.
"""

import asyncio
import dataclasses
import logging
import threading
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from enum import Enum
from pathlib import Path
from typing import NoReturn

from fastapi import FastAPI

from reelvault.application.cache import PluginCache, ScraperCache
from reelvault.application.download_store import DownloadStore
from reelvault.application.jobs import JobManager
from reelvault.application.services.access_guard import (
    check_external_access_tripwire,
    log_external_access_error,
)
from reelvault.application.services.migration_manager import MigrationManager
from reelvault.application.services.session_store import SessionStore
from reelvault.application.services.system_status import SystemStatusReporter
from reelvault.config import ConfigStore, Settings, get_settings
from reelvault.config.store import (
    CONFIG_FILE_NAME,
    DATABASE,
    GENERATED,
    LIBRARIES,
    VALID_LOG_LEVELS,
)
from reelvault.domain.entities import MigrateInput, MigrationRecord, SetupInput, SystemStatus
from reelvault.domain.exceptions import (
    AlreadyConfiguredError,
    ConfigurationError,
    FatalStartupError,
    PluginError,
    ScraperError,
    SetupError,
    TranscoderError,
)
from reelvault.infrastructure.fs import empty_dir, ensure_dir, run_with_timeout, touch
from reelvault.infrastructure.observability import (
    configure_logging,
    start_cpu_profiling,
    stop_cpu_profiling,
)
from reelvault.infrastructure.paths import DirectoryProvisioner, Paths
from reelvault.infrastructure.persistence import Database
from reelvault.infrastructure.streaming import StreamingService
from reelvault.infrastructure.transcoder import TranscoderLocator

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_FILE = "reelvault.sqlite"
DEFAULT_GENERATED_DIR = "generated"


class LifecycleState(Enum):
    """Initialization states of the orchestrator."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class ProcessOrchestrator:
    """Root object of the running server."""

    def __init__(
        self,
        settings: Settings | None = None,
        config: ConfigStore | None = None,
        transcoder_locator: TranscoderLocator | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.config = config or ConfigStore(
            self.settings.config_file, home_dir=self.settings.home_dir
        )
        self._transcoder_locator = transcoder_locator or TranscoderLocator(
            download_timeout=self.settings.transcoder_download_timeout
        )
        self._provisioner = DirectoryProvisioner()

        self.database = Database()
        self.paths: Paths | None = None
        self.ffmpeg_path = ""
        self.ffprobe_path = ""
        self.session_store: SessionStore | None = None
        self.job_manager: JobManager | None = None
        self.download_store: DownloadStore | None = None
        self.plugin_cache: PluginCache | None = None
        self.scraper_cache: ScraperCache | None = None
        self.streaming_service: StreamingService | None = None

        self._state = LifecycleState.UNINITIALIZED
        self._init_error: FatalStartupError | None = None
        self._cond = threading.Condition()

    @property
    def state(self) -> LifecycleState:
        return self._state

    # =========================================================================
    # Initialization
    # =========================================================================

    # Hey future me - this is the run-once guard! The first caller does the
    # work; everyone else arriving while it runs waits on the condition and then
    # sees the final result (READY, or the SAME FatalStartupError). Nobody ever
    # observes a half-built orchestrator.
    def initialize(self) -> None:
        """Bring the process up. Safe to call from many threads, runs once.

        Raises:
            FatalStartupError: If config or the database cannot be loaded
        """
        with self._cond:
            while self._state is LifecycleState.INITIALIZING:
                self._cond.wait()
            if self._state is LifecycleState.READY:
                return
            if self._state is LifecycleState.FAILED:
                if self._init_error is None:
                    raise RuntimeError("initialization failed without an error")
                raise self._init_error
            self._state = LifecycleState.INITIALIZING

        try:
            self._initialize()
        except FatalStartupError as e:
            self._finish_initialize(LifecycleState.FAILED, e)
            raise
        except Exception as e:
            fatal = FatalStartupError(f"error initializing: {e}")
            self._finish_initialize(LifecycleState.FAILED, fatal)
            raise fatal from e

        self._finish_initialize(LifecycleState.READY, None)

    def _finish_initialize(
        self, state: LifecycleState, error: FatalStartupError | None
    ) -> None:
        with self._cond:
            self._state = state
            self._init_error = error
            self._cond.notify_all()

    def _initialize(self) -> None:
        try:
            self.config.load()
        except ConfigurationError as e:
            raise FatalStartupError(f"error initializing configuration: {e.message}") from e

        new_system = self.config.is_new_system()
        if not new_system:
            try:
                self.config.validate()
            except ConfigurationError as e:
                raise FatalStartupError(
                    f"configuration file {self.config.get_config_file()} is invalid: {e.message}"
                ) from e

        self._init_logging()
        start_cpu_profiling(self.settings.cpu_profile_path)

        self.job_manager = JobManager()
        self.download_store = DownloadStore()
        self.plugin_cache = PluginCache(self.config)
        self.streaming_service = StreamingService(self.config)

        if new_system:
            if self.config.get_config_file():
                logger.info("Configuration file %s is incomplete", self.config.get_config_file())
            else:
                logger.info("No configuration file found")
            logger.info("Setup required: waiting for the setup wizard")
            # Placeholder store so the API can serve the setup wizard
            self.session_store = SessionStore.from_config(self.config)
        else:
            logger.info("Using configuration file: %s", self.config.get_config_file())
            self.post_init()

        self.init_security()

        if not new_system:
            try:
                self.init_transcoder()
            except TranscoderError as e:
                logger.error("Transcoder unavailable: %s", e.message)

            if self.config.get_dlna_default_enabled():
                try:
                    self.streaming_service.start()
                except Exception as e:
                    logger.warning("Could not start DLNA service: %s", e)

        logger.info("%s initialized", self.settings.app_name)

    def _init_logging(self) -> None:
        log_level = self.config.get_log_level()
        if log_level not in VALID_LOG_LEVELS:
            log_level = "INFO"
        configure_logging(
            log_level=log_level,
            json_format=self.settings.log_json_format,
            app_name=self.settings.app_name,
            log_file=self.config.get_log_file() or None,
            log_out=self.config.get_log_out(),
        )

    def init_security(self) -> None:
        """Report a previously recorded public-internet access at startup."""
        err = check_external_access_tripwire(self.config)
        if err is not None:
            log_external_access_error(err)

    # =========================================================================
    # Post-config initialization
    # =========================================================================

    def post_init(self) -> None:
        """Wire everything that needs a complete configuration.

        Only database errors propagate; every other failure is logged.

        Raises:
            IncompatibleSchemaError: If the database is newer than this build
            SQLAlchemyError: If the database cannot be opened or created
        """
        try:
            self.config.set_initial_config()
        except (ConfigurationError, OSError) as e:
            logger.error("Error writing initial configuration: %s", e)

        self.refresh_config()

        self.session_store = SessionStore.from_config(self.config)
        if self.plugin_cache is None:
            self.plugin_cache = PluginCache(self.config)
        self.plugin_cache.register_session_store(self.session_store)

        try:
            self.plugin_cache.load_plugins()
        except PluginError as e:
            logger.error("Error reading plugin configs: %s", e.message)

        self.refresh_scraper_cache()
        self._cleanup_stale_files()

        self.database.initialize(self.config.get_database_path())

        if self.database.is_ready:
            self.post_migrate()

    def refresh_config(self) -> None:
        """Rebuild derived paths; provision directories when config is valid."""
        self.paths = Paths.from_generated_root(self.config.get_generated_path())
        if self.config.is_valid():
            self._provisioner.provision(self.paths)

    def refresh_scraper_cache(self) -> None:
        self.scraper_cache = ScraperCache(self.config.get_scrapers_path())
        try:
            self.scraper_cache.load()
        except ScraperError as e:
            logger.error("Error reading scraper configs: %s", e.message)

    def _cleanup_stale_files(self) -> None:
        if self.paths is None or not self.config.get_generated_path():
            return

        stale_dirs = (self.paths.generated.downloads, self.paths.generated.tmp)

        def _empty() -> None:
            for directory in stale_dirs:
                try:
                    empty_dir(directory)
                except OSError as e:
                    logger.warning("Unable to empty %s: %s", directory, e)

        # Large leftovers on slow disks must not hold up startup
        run_with_timeout(
            _empty,
            self.settings.temp_cleanup_timeout,
            on_timeout=lambda: logger.warning(
                "Deleting temporary files is taking a long time; continuing startup"
            ),
            on_complete=lambda: logger.info("Finished deleting temporary files"),
            name="temp-cleanup",
        )

    def post_migrate(self) -> None:
        """Work that needs an up-to-date schema."""
        if self.paths is not None and self.config.is_valid():
            self._provisioner.provision(self.paths)
        logger.info("Database ready at schema version %d", self.database.schema_version)

    # =========================================================================
    # Setup
    # =========================================================================

    def _setup_defaults(self, input: SetupInput) -> SetupInput:
        config_location = input.config_location
        if not config_location:
            if self.config.file_env_set():
                config_location = self.config.get_config_file()
            else:
                config_location = str(Path(self.config.get_home_dir()) / CONFIG_FILE_NAME)

        config_dir = Path(config_location).parent
        return dataclasses.replace(
            input,
            config_location=config_location,
            generated_location=input.generated_location
            or str(config_dir / DEFAULT_GENERATED_DIR),
            database_file=input.database_file or str(config_dir / DEFAULT_DATABASE_FILE),
        )

    def setup(self, input: SetupInput) -> None:
        """First-run setup: write the config file and bring the system up.

        Steps already completed are not undone when a later one fails. Every
        step tolerates having run before, so the request can simply be retried.

        Raises:
            AlreadyConfiguredError: If the system has already been set up
            SetupError: Naming the step that failed
        """
        if not self.config.is_new_system():
            raise AlreadyConfiguredError(self.config.get_config_file())

        input = self._setup_defaults(input)
        logger.info("Running setup (config file: %s)", input.config_location)

        # Don't move a config file that was pinned from the environment
        if not self.config.file_env_set():
            try:
                ensure_dir(Path(input.config_location).parent)
            except OSError as e:
                raise SetupError("creating config directory", e) from e
            try:
                touch(input.config_location)
            except OSError as e:
                raise SetupError("creating config file", e) from e
            self.config.set_config_file(input.config_location)

        if not self.config.has_override(GENERATED):
            try:
                ensure_dir(input.generated_location)
            except OSError as e:
                raise SetupError("creating generated directory", e) from e
            self.config.set(GENERATED, input.generated_location)

        if not self.config.has_override(DATABASE):
            self.config.set(DATABASE, input.database_file)

        self.config.set(LIBRARIES, [library.to_dict() for library in input.libraries])

        try:
            self.config.write()
        except (ConfigurationError, OSError) as e:
            raise SetupError("writing configuration file", e) from e

        try:
            self.post_init()
        except Exception as e:
            raise SetupError("initializing the system", e) from e

        self.config.finalize_setup()

        try:
            self.init_transcoder()
        except TranscoderError as e:
            raise SetupError("initializing ffmpeg", e) from e

        logger.info("Setup complete")

    # =========================================================================
    # Migration / status
    # =========================================================================

    def migrate(self, input: MigrateInput) -> MigrationRecord:
        """Back up, migrate and roll back on failure. See MigrationManager."""
        manager = MigrationManager(self.database, post_migrate=self.post_migrate)
        return manager.migrate(input)

    def get_system_status(self) -> SystemStatus:
        return SystemStatusReporter(self.config, self.database).get_system_status()

    # =========================================================================
    # Transcoder
    # =========================================================================

    def init_transcoder(self) -> None:
        """Locate ffmpeg/ffprobe, downloading them into the config dir if needed.

        Raises:
            TranscoderError: If the binaries can't be found or downloaded
        """
        config_dir = self.config.get_config_path()
        home_dir = self.config.get_home_dir()
        found = self._transcoder_locator.resolve(
            [config_dir, home_dir], download_dir=config_dir or home_dir
        )
        self.ffmpeg_path = found.ffmpeg
        self.ffprobe_path = found.ffprobe
        logger.info("Using ffmpeg: %s", self.ffmpeg_path)
        logger.info("Using ffprobe: %s", self.ffprobe_path)

    def validate_transcoder(self) -> None:
        if not self.ffmpeg_path or not self.ffprobe_path:
            raise TranscoderError("missing ffmpeg and/or ffprobe")

    # =========================================================================
    # Shutdown
    # =========================================================================

    def close(self, code: int = 0) -> int:
        """Release every resource. Returns the (possibly escalated) exit code."""
        if self.streaming_service is not None:
            try:
                self.streaming_service.stop()
            except Exception as e:
                logger.exception("Error stopping DLNA service: %s", e)

        if self.job_manager is not None:
            self.job_manager.stop()

        stop_cpu_profiling()

        try:
            self.database.close()
        except Exception as e:
            logger.exception("Error closing database: %s", e)
            if code == 0:
                code = 1

        return code

    def shutdown(self, code: int = 0) -> NoReturn:
        """Release resources and terminate the process."""
        logger.info("Shutting down (exit code %d)", code)
        raise SystemExit(self.close(code))


# Hey future me - the singleton exists for code paths that have no app.state to
# reach (CLI helpers, background jobs). The server itself builds the
# orchestrator explicitly in main/create_app and passes it around.
_instance: ProcessOrchestrator | None = None
_instance_lock = threading.Lock()


def get_instance() -> ProcessOrchestrator:
    """Get the process-wide orchestrator, initializing it on first use.

    Raises:
        FatalStartupError: If initialization fails
    """
    global _instance
    with _instance_lock:
        if _instance is None:
            _instance = ProcessOrchestrator()
        instance = _instance
    instance.initialize()
    return instance


def reset_instance() -> None:
    """Forget the process-wide orchestrator (for tests)."""
    global _instance
    with _instance_lock:
        _instance = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """FastAPI lifespan: bring the orchestrator up, release it at the end.

    An orchestrator already placed on app.state (by main) is owned by the
    caller and only used here; otherwise one is created and closed here.
    """
    orchestrator: ProcessOrchestrator | None = getattr(app.state, "orchestrator", None)
    owned = orchestrator is None
    if orchestrator is None:
        orchestrator = ProcessOrchestrator()
        app.state.orchestrator = orchestrator

    # initialize() blocks (database, file IO); keep it off the event loop
    await asyncio.to_thread(orchestrator.initialize)
    logger.info("Application started: %s", orchestrator.settings.app_name)

    try:
        yield
    finally:
        logger.info("Shutting down application")
        if owned:
            orchestrator.close()
