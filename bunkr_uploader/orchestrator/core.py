"""Core orchestrator - drives a batch of uploads through a bounded worker pool."""
import asyncio
import logging
import os
from pathlib import Path
from typing import List, Optional, Sequence

from ..errors import ErrorKind, PreprocessError, ServerSetupError, UploadError
from ..models import AlbumTarget, Token, UploadConfig, UploadOutcome
from ..protocols import ICredentialStore, IProgressSink, IUploadClient, IVideoPreprocessor
from ..services.credentials import resolve_token
from ..utils.events import ProgressEvent, ProgressState
from .album_resolver import AlbumResolver
from .models import BatchResult, UploadTask
from .retry import GIVE_UP, RetryPolicy

logger = logging.getLogger(__name__)


class _TaskFailed(Exception):
    """Internal: an upload gave up after ``retries_used`` retries."""

    def __init__(self, error: UploadError, retries_used: int):
        self.error = error
        self.retries_used = retries_used
        super().__init__(error.message)


class BatchUploadOrchestrator:
    """
    Orchestrates batch uploads using injected collaborators.

    Follows:
    - Dependency Injection (client, credentials, preprocessor, progress sink)
    - Single Responsibility (album resolution and retry policy live elsewhere)

    Guarantees:
    - token and album are resolved once, before any upload
    - at most ``concurrency`` uploads in flight, dispatched in input order
    - every file gets exactly one outcome, stored in input order
    - per-file failures never abort the batch

    Usage:
        async with BunkrClient() as client:
            orchestrator = BatchUploadOrchestrator(client, KeyringCredentialStore())
            result = await orchestrator.run_batch(files, AlbumTarget.by_name("Trips"), 4)
            print(result.success_count, result.failure_count)
    """

    def __init__(
        self,
        client: IUploadClient,
        credential_store: Optional[ICredentialStore] = None,
        preprocessor: Optional[IVideoPreprocessor] = None,
        progress: Optional[IProgressSink] = None,
        config: Optional[UploadConfig] = None,
        token: Optional[str] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            client: Remote upload client
            credential_store: Token source used when no explicit token is given
            preprocessor: Video preprocessor (None disables preprocessing)
            progress: Event sink; publish() must not block
            config: Default configuration for run_batch()
            token: Explicit token, overrides the credential store
        """
        self._client = client
        self._credentials = credential_store
        self._preprocessor = preprocessor
        self._progress = progress
        self._config = config or UploadConfig()
        self._explicit_token = token

        self._cancelled = False
        self._workers: List[asyncio.Task] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        self.cancel()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """
        Cancel the running batch.

        In-flight uploads are aborted and, like tasks not yet started,
        recorded as CANCELLED. run_batch() then returns the partial result.
        A cancel during token, session or album setup stops the batch
        before dispatch; every file is then CANCELLED.
        """
        self._cancelled = True
        for worker in self._workers:
            if not worker.done():
                worker.cancel()

    async def run_batch(
        self,
        files: Sequence[Path],
        album: Optional[AlbumTarget] = None,
        concurrency: Optional[int] = None,
        config: Optional[UploadConfig] = None,
    ) -> BatchResult:
        """
        Upload ``files`` and return one outcome per file.

        Args:
            files: Non-empty, ordered file paths (directories already expanded)
            album: Album target; defaults to the config's default album
            concurrency: Worker count, clamped to [1, len(files)];
                defaults to config.default_batch_size
            config: Overrides the orchestrator's config for this run

        Returns:
            BatchResult with outcomes in input order

        Raises:
            ValueError: empty list, or a path that is not a readable file
            MissingCredential: no token available (before any network call)
            ServerSetupError: token verification or server setup failed
            AlbumNotFound / AlbumResolutionError: album could not be resolved
        """
        self._cancelled = False
        config = config or self._config
        paths = self._validate_files(files)
        album = album if album is not None else config.album_target
        requested = concurrency if concurrency is not None else config.default_batch_size
        workers = max(1, min(int(requested), len(paths)))
        policy = RetryPolicy.from_config(config)

        token = resolve_token(self._explicit_token, self._credentials)

        # Before album resolution so a bad token never creates an album
        await self._prepare_client(token, policy)
        if self._cancelled:
            return self._cancelled_batch(paths, None)

        resolver = AlbumResolver(self._client, create_missing=config.create_missing_album)
        album_id = await resolver.resolve(album, token)
        if self._cancelled:
            return self._cancelled_batch(paths, album_id)

        tasks = [
            UploadTask(
                index=i,
                file_path=path,
                album_id=album_id,
                preprocess=self._should_preprocess(path, config),
            )
            for i, path in enumerate(paths)
        ]
        logger.info(
            "Starting batch: %d file(s), %d worker(s), album %s",
            len(tasks), workers, album_id or "(none)",
        )

        outcomes: List[Optional[UploadOutcome]] = [None] * len(tasks)
        lock = asyncio.Lock()
        queue: "asyncio.Queue[UploadTask]" = asyncio.Queue()
        for task in tasks:
            queue.put_nowait(task)
            self._publish(ProgressEvent(task.file_path, ProgressState.QUEUED))

        self._workers = [
            asyncio.create_task(self._worker(queue, outcomes, lock, token, policy))
            for _ in range(workers)
        ]
        try:
            results = await asyncio.gather(*self._workers, return_exceptions=True)
        except asyncio.CancelledError:
            # Caller cancelled us: stop workers, then propagate
            self._cancelled = True
            for worker in self._workers:
                worker.cancel()
            await asyncio.gather(*self._workers, return_exceptions=True)
            self._fill_cancelled(tasks, outcomes)
            raise
        finally:
            self._workers = []

        for result in results:
            if isinstance(result, Exception):
                raise result

        self._fill_cancelled(tasks, outcomes)
        batch = BatchResult(outcomes=list(outcomes), album_id=album_id, was_cancelled=self._cancelled)
        logger.info(
            "Batch complete: %d uploaded, %d failed, %d cancelled",
            batch.success_count, batch.failure_count, len(batch.cancelled),
        )
        return batch

    @staticmethod
    def _validate_files(files: Sequence[Path]) -> List[Path]:
        paths = [Path(f) for f in files]
        if not paths:
            raise ValueError("No files to upload")
        for path in paths:
            if not path.is_file():
                raise ValueError(f"Not a regular file: {path}")
            if not os.access(path, os.R_OK):
                raise ValueError(f"File is not readable: {path}")
        return paths

    async def _prepare_client(self, token: Token, policy: RetryPolicy) -> None:
        """Run the client's one-time session setup, retrying transient failures."""
        prepare = getattr(self._client, "prepare", None)
        if not callable(prepare):
            return

        attempt = 1
        while True:
            try:
                await prepare(token)
                return
            except UploadError as e:
                decision = policy.decide(attempt, e.kind)
                if decision is GIVE_UP:
                    raise ServerSetupError(f"Could not start upload session: {e.message}") from e
                logger.info(
                    f"Session setup attempt {attempt} failed ({e.message}), "
                    f"retrying in {decision.delay:.1f}s"
                )
                await asyncio.sleep(decision.delay)
                attempt += 1

    def _cancelled_batch(self, paths: List[Path], album_id: Optional[str]) -> BatchResult:
        logger.info("Batch cancelled before dispatch: %d file(s) skipped", len(paths))
        outcomes = []
        for path in paths:
            outcomes.append(UploadOutcome.cancelled(path))
            self._publish(ProgressEvent(path, ProgressState.CANCELLED))
        return BatchResult(outcomes=outcomes, album_id=album_id, was_cancelled=True)

    def _should_preprocess(self, path: Path, config: UploadConfig) -> bool:
        return bool(
            config.preprocess_videos
            and self._preprocessor is not None
            and self._preprocessor.is_video(path)
        )

    def _publish(self, event: ProgressEvent) -> None:
        if self._progress is None:
            return
        try:
            self._progress.publish(event)
        except Exception as e:
            logger.warning(f"Progress sink rejected event for {event.file_path.name}: {e}")

    async def _worker(
        self,
        queue: "asyncio.Queue[UploadTask]",
        outcomes: List[Optional[UploadOutcome]],
        lock: asyncio.Lock,
        token: Token,
        policy: RetryPolicy,
    ) -> None:
        while not self._cancelled:
            try:
                task = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            try:
                outcome = await self._process(task, token, policy)
            except asyncio.CancelledError:
                await self._record(task, UploadOutcome.cancelled(task.file_path), outcomes, lock)
                raise
            await self._record(task, outcome, outcomes, lock)

    async def _record(
        self,
        task: UploadTask,
        outcome: UploadOutcome,
        outcomes: List[Optional[UploadOutcome]],
        lock: asyncio.Lock,
    ) -> None:
        async with lock:
            if outcomes[task.index] is not None:
                return
            outcomes[task.index] = outcome

        if outcome.success:
            state = ProgressState.SUCCEEDED
        elif outcome.error_kind is None:
            state = ProgressState.CANCELLED
        else:
            state = ProgressState.FAILED
        self._publish(ProgressEvent(
            task.file_path,
            state,
            attempt=outcome.retries_used + 1,
            url=outcome.url,
            error=outcome.error,
        ))

    def _fill_cancelled(self, tasks: List[UploadTask], outcomes: List[Optional[UploadOutcome]]) -> None:
        for task in tasks:
            if outcomes[task.index] is None:
                outcomes[task.index] = UploadOutcome.cancelled(task.file_path)
                self._publish(ProgressEvent(task.file_path, ProgressState.CANCELLED))

    async def _process(self, task: UploadTask, token: Token, policy: RetryPolicy) -> UploadOutcome:
        """Preprocess (if flagged) and upload one task. Never raises for per-file errors."""
        path = task.file_path
        self._publish(ProgressEvent(path, ProgressState.IN_PROGRESS, attempt=1))

        prepared = None
        parts = (path,)
        if task.preprocess:
            try:
                prepared = await self._preprocessor.preprocess(
                    path, getattr(self._client, "max_file_size", None)
                )
            except PreprocessError as e:
                logger.warning(f"Preprocessing failed for {path.name}: {e}")
                return UploadOutcome.fail(path, ErrorKind.PREPROCESS, str(e))
            except Exception as e:
                logger.exception(f"Unexpected preprocessing error for {path.name}")
                return UploadOutcome.fail(path, ErrorKind.PREPROCESS, str(e))
            parts = prepared.files

        retries_used = 0
        try:
            urls = []
            for part in parts:
                url, retries = await self._upload_with_retry(task, part, token, policy)
                retries_used += retries
                urls.append(url)
            return UploadOutcome.ok(path, urls, retries_used=retries_used)
        except _TaskFailed as failed:
            retries_used += failed.retries_used
            logger.warning(f"Upload failed for {path.name}: {failed.error.message}")
            return UploadOutcome.fail(
                path,
                failed.error.kind,
                failed.error.message,
                retries_used=retries_used,
                status_code=failed.error.status_code,
            )
        except Exception as e:
            logger.exception(f"Unexpected error uploading {path.name}")
            return UploadOutcome.fail(path, ErrorKind.PERMANENT, str(e), retries_used=retries_used)
        finally:
            if prepared is not None:
                self._preprocessor.cleanup(prepared)

    async def _upload_with_retry(
        self,
        task: UploadTask,
        part: Path,
        token: Token,
        policy: RetryPolicy,
    ):
        attempt = 1
        while True:
            try:
                url = await self._client.upload(part, token, task.album_id)
                return url, attempt - 1
            except UploadError as e:
                decision = policy.decide(attempt, e.kind)
                if decision is GIVE_UP:
                    raise _TaskFailed(e, attempt - 1) from e
                logger.info(
                    f"{part.name}: attempt {attempt} failed ({e.message}), "
                    f"retrying in {decision.delay:.1f}s"
                )
                self._publish(ProgressEvent(
                    task.file_path,
                    ProgressState.RETRYING,
                    attempt=attempt,
                    error=e.message,
                    delay=decision.delay,
                ))
                await asyncio.sleep(decision.delay)
                attempt += 1
