"""Pipeline orchestrator for brain.

``Brain`` wires the configured stage components behind one capability
interface; ``PipelineController`` drives them through an explicit state
machine and turns the outcome into a :class:`PipelineResult`:

  start → keywords_extracted → files_found → content_loaded
        → context_assembled → answered
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, TypeVar

from brain.assemble import ContextAssembler
from brain.content import ContentLoader
from brain.exceptions import (
    AssemblyError,
    BrainError,
    ConfigError,
    ContentLoadError,
    InferenceError,
    PluginError,
    SearchError,
    TemplateError,
)
from brain.generate import ResponseGenerator
from brain.keywords import KeywordExtractor
from brain.prompts import PromptRenderer
from brain.registry import default_registry
from brain.search import FileSearcher
from brain.types import ErrorKind, Mode, PipelineResult, RankedFileList, Stage

if TYPE_CHECKING:
    from collections.abc import Callable

    from brain.config import BrainConfig
    from brain.inference.base import BaseInferenceClient
    from brain.types import AssembledContext, KeywordSet, LoadResult

__all__ = ["Brain", "BrainCapabilities", "PipelineController"]

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

# Inference failures worth another attempt; unparseable replies are not.
_RETRYABLE_KINDS = frozenset({"transport", "timeout", "http"})

# Error kind for unexpected exceptions, by the stage being entered.
_STAGE_ERROR_KINDS: dict[Stage, ErrorKind] = {
    Stage.KEYWORDS_EXTRACTED: ErrorKind.INFERENCE,
    Stage.FILES_FOUND: ErrorKind.SEARCH,
    Stage.CONTENT_LOADED: ErrorKind.CONTENT_LOAD,
    Stage.CONTEXT_ASSEMBLED: ErrorKind.ASSEMBLY,
    Stage.ANSWERED: ErrorKind.INFERENCE,
}

_EXCEPTION_KINDS: tuple[tuple[type[BrainError], ErrorKind], ...] = (
    (InferenceError, ErrorKind.INFERENCE),
    (SearchError, ErrorKind.SEARCH),
    (ContentLoadError, ErrorKind.CONTENT_LOAD),
    (AssemblyError, ErrorKind.ASSEMBLY),
    (ConfigError, ErrorKind.CONFIG),
    (PluginError, ErrorKind.CONFIG),
    (TemplateError, ErrorKind.CONFIG),
)


class BrainCapabilities(Protocol):
    """The operations every transport (CLI, tool server) builds on."""

    def extract_keywords(self, query: str) -> KeywordSet: ...

    def search_files(self, keywords: KeywordSet) -> RankedFileList: ...

    def load_content(self, files: RankedFileList) -> LoadResult: ...

    def assemble_context(self, contents: LoadResult) -> AssembledContext: ...

    def generate_response(self, query: str, context: AssembledContext) -> str: ...


class Brain:
    """Configured stage components behind the capability interface.

    All components are injected via the constructor, so tests can swap in
    fakes. Use :meth:`from_config` for the standard wiring.
    """

    def __init__(
        self,
        extractor: KeywordExtractor,
        searcher: FileSearcher,
        loader: ContentLoader,
        assembler: ContextAssembler,
        generator: ResponseGenerator,
        config: BrainConfig,
    ) -> None:
        self.extractor = extractor
        self.searcher = searcher
        self.loader = loader
        self.assembler = assembler
        self.generator = generator
        self.config = config

    @classmethod
    def from_config(
        cls,
        config: BrainConfig,
        client: BaseInferenceClient | None = None,
    ) -> Brain:
        """Build the standard pipeline components from ``config``.

        Raises:
            PluginError: If the inference provider is unknown.
            TemplateError: If the built-in prompt templates are missing.
        """
        if client is None:
            client = default_registry.create("inference", config.inference.provider, config)

        templates_dir = config.pipeline.templates_dir
        prompts = PromptRenderer(Path(templates_dir).expanduser() if templates_dir else None)

        return cls(
            extractor=KeywordExtractor(client, prompts, config.pipeline.max_keywords),
            searcher=FileSearcher(
                config.knowledge.extensions,
                ignore_case=config.knowledge.ignore_case,
                use_regex=config.knowledge.use_regex,
                max_file_bytes=config.knowledge.max_file_bytes,
            ),
            loader=ContentLoader(config.knowledge.max_file_bytes),
            assembler=ContextAssembler(round_to_line=config.pipeline.round_to_line),
            generator=ResponseGenerator(client, prompts),
            config=config,
        )

    def extract_keywords(self, query: str) -> KeywordSet:
        return self.extractor.extract(query)

    def search_files(self, keywords: KeywordSet) -> RankedFileList:
        knowledge = self.config.knowledge
        return self.searcher.search(
            keywords,
            self.config.root,
            max_files=knowledge.max_files,
            parallelism=knowledge.parallelism,
        )

    def load_content(self, files: RankedFileList) -> LoadResult:
        return self.loader.load(files)

    def assemble_context(self, contents: LoadResult) -> AssembledContext:
        return self.assembler.assemble(contents, self.config.pipeline.max_context_length)

    def generate_response(self, query: str, context: AssembledContext) -> str:
        return self.generator.generate(query, context)


@dataclass
class _RunState:
    """Values produced so far by one pipeline run."""

    query: str
    keywords: KeywordSet | None = None
    files: RankedFileList | None = None
    loaded: LoadResult | None = None
    context: AssembledContext | None = None
    answer: str | None = None
    warnings: list[str] = field(default_factory=list)


class PipelineController:
    """Runs the pipeline up to the accepting stage of the requested mode.

    Each stage is entered only when the mode needs it, so ``extract-only``
    never touches the filesystem and ``search-only`` never loads content
    or calls the model a second time.

    Usage::

        controller = PipelineController(Brain.from_config(config))
        result = controller.run("what did I note about rust lifetimes?", Mode.SEARCH_ONLY)

    Args:
        brain: Capability object performing the stage work.
        inference_retries: Extra attempts for failed inference calls.
        retry_delay: Base delay in seconds, doubled after each attempt.
    """

    def __init__(
        self,
        brain: BrainCapabilities,
        *,
        inference_retries: int = 0,
        retry_delay: float = 1.0,
    ) -> None:
        self.brain = brain
        self.inference_retries = max(inference_retries, 0)
        self.retry_delay = retry_delay
        self._transitions: dict[Stage, tuple[Stage, Callable[[_RunState], None]]] = {
            Stage.START: (Stage.KEYWORDS_EXTRACTED, self._extract),
            Stage.KEYWORDS_EXTRACTED: (Stage.FILES_FOUND, self._search),
            Stage.FILES_FOUND: (Stage.CONTENT_LOADED, self._load),
            Stage.CONTENT_LOADED: (Stage.CONTEXT_ASSEMBLED, self._assemble),
            Stage.CONTEXT_ASSEMBLED: (Stage.ANSWERED, self._generate),
        }

    def run(self, query: str, mode: Mode = Mode.GENERATE_RESPONSE) -> PipelineResult:
        """Process ``query`` and return the (possibly partial) result.

        Never raises for pipeline failures: they come back as a result with
        ``error_kind`` set and every value from the completed stages kept.
        """
        if not query or not query.strip():
            return PipelineResult(
                mode=mode,
                error_kind=ErrorKind.INVALID_QUERY,
                error_message="Query must not be empty",
            )

        state = _RunState(query=query.strip())
        stage = Stage.START
        logger.info("Running pipeline in %s mode", mode.value)

        while stage is not mode.accepting_stage:
            next_stage, step = self._transitions[stage]
            try:
                step(state)
            except BrainError as e:
                return self._failed(mode, stage, state, _error_kind(e, next_stage), str(e))
            except Exception as e:
                logger.exception("Unexpected failure while entering %s", next_stage.value)
                message = f"{type(e).__name__}: {e}"
                return self._failed(mode, stage, state, _STAGE_ERROR_KINDS[next_stage], message)
            stage = next_stage
            logger.info("Pipeline reached %s", stage.value)

        return self._result(mode, stage, state)

    # --- stage steps ---

    def _extract(self, state: _RunState) -> None:
        state.keywords = self._with_retries(self.brain.extract_keywords, state.query)

    def _search(self, state: _RunState) -> None:
        keywords = _reached(state.keywords, Stage.KEYWORDS_EXTRACTED)
        if keywords.is_empty:
            note = "no keywords could be extracted; search was skipped"
            state.files = RankedFileList(notes=(note,))
            state.warnings.append(note)
            return
        state.files = self.brain.search_files(keywords)
        state.warnings.extend(state.files.notes)

    def _load(self, state: _RunState) -> None:
        files = _reached(state.files, Stage.FILES_FOUND)
        state.loaded = self.brain.load_content(files)
        state.warnings.extend(state.loaded.warnings)

    def _assemble(self, state: _RunState) -> None:
        loaded = _reached(state.loaded, Stage.CONTENT_LOADED)
        state.context = self.brain.assemble_context(loaded)

    def _generate(self, state: _RunState) -> None:
        context = _reached(state.context, Stage.CONTEXT_ASSEMBLED)
        state.answer = self._with_retries(self.brain.generate_response, state.query, context)

    # --- helpers ---

    def _with_retries(self, func: Callable[..., _T], *args: object) -> _T:
        """Call an inference capability, retrying transient failures a bounded number of times."""
        attempt = 0
        while True:
            try:
                return func(*args)
            except InferenceError as e:
                if attempt >= self.inference_retries or e.kind not in _RETRYABLE_KINDS:
                    raise
                wait = self.retry_delay * (2**attempt)
                attempt += 1
                logger.warning(
                    "Inference failed (%s), retry %d/%d in %.1fs",
                    e,
                    attempt,
                    self.inference_retries,
                    wait,
                )
                if wait > 0:
                    time.sleep(wait)

    @staticmethod
    def _result(mode: Mode, stage: Stage, state: _RunState) -> PipelineResult:
        cited = None
        if state.answer is not None and state.context is not None:
            cited = tuple(state.context.included_paths)
        return PipelineResult(
            mode=mode,
            stage=stage,
            keywords=state.keywords,
            matched_files=state.files,
            answer=state.answer,
            cited_files=cited,
            warnings=tuple(state.warnings),
        )

    @staticmethod
    def _failed(
        mode: Mode,
        stage: Stage,
        state: _RunState,
        kind: ErrorKind,
        message: str,
    ) -> PipelineResult:
        logger.error("Pipeline failed after %s with %s: %s", stage.value, kind.value, message)
        return PipelineResult(
            mode=mode,
            stage=stage,
            keywords=state.keywords,
            matched_files=state.files,
            error_kind=kind,
            error_message=message,
            warnings=tuple(state.warnings),
        )


def _reached(value: _T | None, stage: Stage) -> _T:
    """Return the value a completed stage produced."""
    if value is None:
        raise BrainError(f"Pipeline step ran before {stage.value} was reached")
    return value


def _error_kind(error: BrainError, entering: Stage) -> ErrorKind:
    for exc_type, kind in _EXCEPTION_KINDS:
        if isinstance(error, exc_type):
            return kind
    return _STAGE_ERROR_KINDS[entering]
