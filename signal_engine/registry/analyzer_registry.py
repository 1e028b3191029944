"""
Analyzer registry.

Holds independent analyzer definitions and evaluates every enabled one
concurrently against a shared market snapshot. A failing analyzer is
logged and left out of the round; it never prevents the others from
reporting.
"""

import asyncio
import inspect
import time
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, Union

from ..models import AnalyzerSignal, MarketSnapshot
from ..utils.exceptions import (
    AnalyzerEvaluationException,
    AnalyzerNotFoundException,
    ConfigurationException,
    InvalidDataException,
    log_exception,
)
from ..utils.logger import LoggerMixin, log_performance_metrics

EvaluateResult = Optional[AnalyzerSignal]
EvaluateFn = Callable[[MarketSnapshot], Union[EvaluateResult, Awaitable[EvaluateResult]]]


@dataclass
class AnalyzerDefinition:
    """
    Registry entry for one signal source

    ``evaluate`` may be a plain function or a coroutine function. It must
    only read the snapshot; plain functions run in a worker thread so
    they do not block the other evaluations.
    """
    name: str
    weight: float
    priority: int
    evaluate: EvaluateFn
    enabled: bool = True

    def __post_init__(self):
        if not callable(self.evaluate):
            raise ConfigurationException(
                f"Analyzer {self.name} evaluate must be callable",
                config_section="registry",
                invalid_params=["evaluate"]
            )
        if self.weight < 0:
            raise ConfigurationException(
                f"Analyzer {self.name} weight must be non-negative",
                config_section="registry",
                invalid_params=["weight"]
            )

    def describe(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'weight': self.weight,
            'priority': self.priority,
            'enabled': self.enabled,
        }


@dataclass(frozen=True)
class CollectionReport:
    """Outcome of one signal collection round"""
    signals: List[AnalyzerSignal] = field(default_factory=list)
    blocked: List[str] = field(default_factory=list)  # returned no signal
    errors: Dict[str, str] = field(default_factory=dict)  # analyzer name -> error message
    total: int = 0
    duration_seconds: float = 0.0

    @property
    def collected(self) -> int:
        return len(self.signals)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'collected': self.collected,
            'blocked': list(self.blocked),
            'errors': dict(self.errors),
            'total': self.total,
            'duration_seconds': round(self.duration_seconds, 4),
            'signals': [signal.to_dict() for signal in self.signals],
        }


class AnalyzerRegistry(LoggerMixin):
    """
    Parallel evaluation and collection of analyzer signals

    Administrative calls (register, set_weight, set_enabled, clear) must
    not run concurrently with a collection round.

    Args:
        logger: Injected logger (optional)
    """

    def __init__(self, logger=None):
        if logger is not None:
            self._logger = logger
        self._analyzers: Dict[str, AnalyzerDefinition] = {}

    def register(self, name: str, definition: AnalyzerDefinition) -> None:
        """
        Register or replace an analyzer under ``name``

        Args:
            name: Registry key; overrides ``definition.name`` if they differ
            definition: Analyzer definition
        """
        if definition.name != name:
            definition = replace(definition, name=name)
        self._analyzers[name] = definition
        self.logger.info(
            "analyzer_registered",
            analyzer=name,
            weight=definition.weight,
            priority=definition.priority,
            enabled=definition.enabled,
        )

    def register_batch(self, definitions: Iterable[AnalyzerDefinition]) -> None:
        for definition in definitions:
            self.register(definition.name, definition)

    def get_analyzer(self, name: str) -> Optional[AnalyzerDefinition]:
        return self._analyzers.get(name)

    def get_analyzers(self) -> List[AnalyzerDefinition]:
        return list(self._analyzers.values())

    def set_weight(self, name: str, weight: float) -> None:
        """
        Change an analyzer's weight

        Raises:
            AnalyzerNotFoundException: If ``name`` is not registered
            ConfigurationException: If ``weight`` is negative
        """
        definition = self._require(name)
        if weight < 0:
            raise ConfigurationException(
                f"Analyzer {name} weight must be non-negative",
                config_section="registry",
                invalid_params=["weight"]
            )
        definition.weight = weight
        self.logger.info("analyzer_weight_updated", analyzer=name, weight=weight)

    def set_enabled(self, name: str, enabled: bool) -> None:
        """
        Enable or disable an analyzer

        Raises:
            AnalyzerNotFoundException: If ``name`` is not registered
        """
        definition = self._require(name)
        definition.enabled = bool(enabled)
        self.logger.info("analyzer_enabled" if enabled else "analyzer_disabled", analyzer=name)

    def clear(self) -> None:
        self._analyzers.clear()
        self.logger.info("analyzers_cleared")

    @property
    def count(self) -> int:
        return len(self._analyzers)

    @property
    def enabled_count(self) -> int:
        return sum(1 for definition in self._analyzers.values() if definition.enabled)

    def __len__(self) -> int:
        return len(self._analyzers)

    def __contains__(self, name: object) -> bool:
        return name in self._analyzers

    def get_status(self) -> Dict[str, Any]:
        return {
            'total_analyzers': self.count,
            'enabled_analyzers': self.enabled_count,
            'analyzers': [definition.describe() for definition in self._analyzers.values()],
        }

    async def collect_signals(self, snapshot: MarketSnapshot) -> List[AnalyzerSignal]:
        """
        Evaluate every enabled analyzer and return the produced signals

        The order of the returned signals carries no meaning.

        Args:
            snapshot: Market data shared by all analyzers this round

        Returns:
            Signals from analyzers that produced one
        """
        report = await self.collect_with_report(snapshot)
        return report.signals

    async def collect_with_report(self, snapshot: MarketSnapshot) -> CollectionReport:
        """
        Evaluate every enabled analyzer and report what each one did

        Args:
            snapshot: Market data shared by all analyzers this round

        Returns:
            Signals plus the names of analyzers that returned nothing and
            of those that failed
        """
        enabled = [definition for definition in self._analyzers.values() if definition.enabled]
        if not enabled:
            self.logger.warning("no_analyzers_enabled")
            return CollectionReport()

        start_time = time.perf_counter()
        outcomes = await asyncio.gather(*(self._evaluate(definition, snapshot) for definition in enabled))

        signals: List[AnalyzerSignal] = []
        blocked: List[str] = []
        errors: Dict[str, str] = {}

        for definition, signal, error in outcomes:
            if error is not None:
                errors[definition.name] = str(error.original_exception or error)
                log_exception(self.logger, error, {'analyzer': definition.name}, event="analyzer_error")
            elif signal is None:
                blocked.append(definition.name)
                self.logger.warning(
                    "analyzer_blocked",
                    analyzer=definition.name,
                    weight=definition.weight,
                    priority=definition.priority,
                )
            else:
                signals.append(signal)
                self.logger.info(
                    "analyzer_signal",
                    analyzer=definition.name,
                    source=signal.source,
                    direction=signal.direction.value,
                    confidence=signal.confidence,
                    weight=signal.weight,
                    priority=signal.priority,
                )

        report = CollectionReport(
            signals=signals,
            blocked=blocked,
            errors=errors,
            total=len(enabled),
            duration_seconds=time.perf_counter() - start_time,
        )

        self.logger.info(
            "signal_collection_summary",
            symbol=snapshot.symbol,
            collected=report.collected,
            blocked=len(blocked),
            errored=len(errors),
            total=report.total,
        )
        log_performance_metrics(
            self.logger,
            operation="collect_signals",
            duration_seconds=report.duration_seconds,
            additional_metrics={'analyzers': report.total},
        )
        return report

    async def _evaluate(
        self,
        definition: AnalyzerDefinition,
        snapshot: MarketSnapshot,
    ) -> Tuple[AnalyzerDefinition, Optional[AnalyzerSignal], Optional[AnalyzerEvaluationException]]:
        try:
            if inspect.iscoroutinefunction(definition.evaluate):
                result = await definition.evaluate(snapshot)
            else:
                result = await asyncio.to_thread(definition.evaluate, snapshot)
                if inspect.isawaitable(result):
                    result = await result

            if result is not None and not isinstance(result, AnalyzerSignal):
                raise InvalidDataException(
                    f"Analyzer returned {type(result).__name__} instead of AnalyzerSignal",
                    field_name="signal"
                )
        except Exception as e:
            return definition, None, AnalyzerEvaluationException(definition.name, e)

        return definition, result, None

    def _require(self, name: str) -> AnalyzerDefinition:
        definition = self._analyzers.get(name)
        if definition is None:
            raise AnalyzerNotFoundException(name, registered=sorted(self._analyzers))
        return definition
