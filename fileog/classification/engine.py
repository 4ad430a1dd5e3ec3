"""
Classification Engine
=====================

Combines rule matching and model classification for a batch of files.

Per file:
    1. Rules. A match is final with confidence 1.0 and no model call.
    2. The model, when enabled and rules did not match (or deferred).
    3. Otherwise, or when the model call fails or times out, the fallback
       category with confidence 0 and the cause as reasoning.

Model calls run on a bounded thread pool. Results keep input order.
"""

import threading
import time
import uuid
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Dict, List, Optional

from fileog.classification.llm_classifier import LlmClassifier
from fileog.classification.providers import ModelClient
from fileog.classification.results import SOURCE_FALLBACK, SOURCE_RULE, ClassificationResult
from fileog.classification.rule_matcher import RuleMatcher, RuleOutcome
from fileog.config.categories import Category, fallback_category
from fileog.config.settings import AppSettings
from fileog.scanning.scanner import FileDescriptor
from fileog.utils.exceptions import ClassificationError, OperationCancelled
from fileog.utils.logging_config import Timer, get_logger, set_correlation_id
from fileog.utils.progress import CancellationToken, ProgressChannel, ProgressEvent, emit

logger = get_logger(__name__)

# How often the dispatcher wakes up to check timeouts and cancellation.
POLL_INTERVAL = 0.1


class ClassificationEngine:
    """Turns file descriptors into category decisions."""

    def __init__(
        self,
        rule_matcher: Optional[RuleMatcher] = None,
        llm_classifier: Optional[LlmClassifier] = None
    ):
        self.rule_matcher = rule_matcher or RuleMatcher()
        self.llm_classifier = llm_classifier or LlmClassifier()

    def classify_one(
        self,
        descriptor: FileDescriptor,
        categories: List[Category],
        settings: AppSettings
    ) -> ClassificationResult:
        """Classify a single file synchronously.

        Model failures degrade to the fallback category; they are not raised.
        """
        outcome = self.rule_matcher.evaluate(descriptor, categories)
        if outcome.matched:
            return self._rule_result(descriptor, outcome)
        if not settings.llm.enabled:
            return self._fallback(descriptor, categories, settings, self._disabled_reason(outcome))

        try:
            return self._classify_with_model(descriptor, categories, settings, outcome, client=None)
        except ClassificationError as e:
            logger.warning(f"LLM classification failed for {descriptor.name}: {e}")
            return self._fallback(descriptor, categories, settings, f"LLM classification failed: {e.message}")

    def classify_batch(
        self,
        descriptors: List[FileDescriptor],
        categories: List[Category],
        settings: AppSettings,
        progress: Optional[ProgressChannel] = None,
        cancel: Optional[CancellationToken] = None
    ) -> List[ClassificationResult]:
        """Classify many files, one result per input in input order.

        Args:
            descriptors: Files to classify.
            categories: Category snapshot used for the whole batch.
            settings: Settings snapshot used for the whole batch.
            progress: Optional progress channel.
            cancel: Optional cancellation token.

        Returns:
            List of ClassificationResult aligned with ``descriptors``.

        Raises:
            OperationCancelled: If cancelled before the batch finished.
        """
        run_id = str(uuid.uuid4())[:8]
        set_correlation_id(run_id)
        total = len(descriptors)
        results: List[Optional[ClassificationResult]] = [None] * total
        completed = 0

        emit(progress, ProgressEvent.step("started", 0, total))

        with Timer(logger, f"classify {total} files"):
            pending = []
            for index, descriptor in enumerate(descriptors):
                if cancel is not None and cancel.cancelled:
                    self._cancelled(progress, completed, total)
                outcome = self.rule_matcher.evaluate(descriptor, categories)
                if outcome.matched:
                    results[index] = self._rule_result(descriptor, outcome)
                    completed += 1
                    emit(progress, ProgressEvent.step("processing", completed, total, descriptor.name))
                else:
                    pending.append((index, descriptor, outcome))

            if pending:
                completed = self._classify_pending(
                    pending, results, categories, settings, progress, cancel, completed, total, run_id
                )

        emit(progress, ProgressEvent.step("completed", completed, total))
        logger.info(f"Classified {total} files ({total - len(pending)} by rules)")
        return results

    def _classify_pending(
        self,
        pending: list,
        results: list,
        categories: List[Category],
        settings: AppSettings,
        progress: Optional[ProgressChannel],
        cancel: Optional[CancellationToken],
        completed: int,
        total: int,
        run_id: str
    ) -> int:
        """Resolve files that rules left undecided. Returns the new completed count."""

        def finish(index: int, result: ClassificationResult) -> None:
            nonlocal completed
            results[index] = result
            completed += 1
            emit(progress, ProgressEvent.step("processing", completed, total, descriptors[index].name))

        descriptors = {index: descriptor for index, descriptor, _ in pending}

        if not settings.llm.enabled:
            for index, descriptor, outcome in pending:
                finish(index, self._fallback(descriptor, categories, settings, self._disabled_reason(outcome)))
            return completed

        try:
            client = self.llm_classifier.create_client(settings.llm.config)
        except ClassificationError as e:
            logger.error(f"LLM client unavailable: {e}")
            for index, descriptor, _ in pending:
                finish(index, self._fallback(
                    descriptor, categories, settings, f"LLM classification failed: {e.message}"
                ))
            return completed

        timeout = settings.classification.timeout_seconds
        workers = max(1, min(settings.classification.max_concurrency, len(pending)))
        started: Dict[int, float] = {}
        started_lock = threading.Lock()

        def run(index: int, descriptor: FileDescriptor, outcome: RuleOutcome) -> ClassificationResult:
            set_correlation_id(run_id)
            with started_lock:
                started[index] = time.monotonic()
            return self._classify_with_model(descriptor, categories, settings, outcome, client)

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fileog-llm")
        try:
            futures: Dict[Future, int] = {
                executor.submit(run, index, descriptor, outcome): index
                for index, descriptor, outcome in pending
            }
            not_done = set(futures)
            while not_done:
                if cancel is not None and cancel.cancelled:
                    for future in not_done:
                        future.cancel()
                    wait([f for f in not_done if not f.cancelled()])
                    self._cancelled(progress, completed, total)

                done, not_done = wait(not_done, timeout=POLL_INTERVAL, return_when=FIRST_COMPLETED)
                for future in done:
                    index = futures[future]
                    finish(index, self._collect(future, descriptors[index], categories, settings))

                now = time.monotonic()
                with started_lock:
                    overdue = [
                        f for f in not_done
                        if futures[f] in started and now - started[futures[f]] > timeout
                    ]
                for future in overdue:
                    not_done.discard(future)
                    descriptor = descriptors[futures[future]]
                    logger.warning(f"LLM classification timed out for {descriptor.name} after {timeout}s")
                    finish(futures[future], self._fallback(
                        descriptor, categories, settings, f"LLM classification timed out after {timeout}s"
                    ))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return completed

    def _collect(
        self,
        future: Future,
        descriptor: FileDescriptor,
        categories: List[Category],
        settings: AppSettings
    ) -> ClassificationResult:
        try:
            return future.result()
        except ClassificationError as e:
            logger.warning(f"LLM classification failed for {descriptor.name}: {e}")
            return self._fallback(descriptor, categories, settings, f"LLM classification failed: {e.message}")
        except Exception as e:
            logger.error(f"Unexpected error classifying {descriptor.name}: {e}", exc_info=True)
            return self._fallback(descriptor, categories, settings, f"LLM classification failed: {e}")

    def _classify_with_model(
        self,
        descriptor: FileDescriptor,
        categories: List[Category],
        settings: AppSettings,
        outcome: RuleOutcome,
        client: Optional[ModelClient]
    ) -> ClassificationResult:
        return self.llm_classifier.classify(
            descriptor,
            categories,
            settings.prompts,
            settings.llm.config,
            hints=outcome.hints,
            timeout=settings.classification.timeout_seconds,
            preview_chars=settings.classification.text_preview_chars,
            client=client,
        )

    @staticmethod
    def _rule_result(descriptor: FileDescriptor, outcome: RuleOutcome) -> ClassificationResult:
        rule = outcome.matched_rule
        return ClassificationResult(
            file_path=str(descriptor.path),
            suggested_category=outcome.category.id,
            confidence=1.0,
            reasoning=f"Matched {rule.rule_type.value} rule '{rule.pattern}'",
            source=SOURCE_RULE,
        )

    @staticmethod
    def _disabled_reason(outcome: RuleOutcome) -> str:
        if outcome.deferred:
            return "Rules deferred to the LLM, but LLM classification is disabled"
        return "No rule matched and LLM classification is disabled"

    @staticmethod
    def _fallback(
        descriptor: FileDescriptor,
        categories: List[Category],
        settings: AppSettings,
        reason: str
    ) -> ClassificationResult:
        category = fallback_category(categories, settings.classification.fallback_category)
        return ClassificationResult(
            file_path=str(descriptor.path),
            suggested_category=category.id,
            confidence=0.0,
            reasoning=reason,
            source=SOURCE_FALLBACK,
        )

    @staticmethod
    def _cancelled(progress: Optional[ProgressChannel], completed: int, total: int) -> None:
        emit(progress, ProgressEvent.step("cancelled", completed, total))
        logger.info(f"Classification cancelled after {completed} of {total} files")
        raise OperationCancelled("Classification cancelled", completed=completed)
