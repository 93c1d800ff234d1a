# Copyright 2024 inuex35
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Fan-out/fan-in processing of several receivers"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Mapping, Optional

from ..core.config import EstimatorConfig
from ..core.data_structures import EpochObservations, SourceID
from .ambiguity import AmbiguityFixResolver
from .distributor import ResidualSink
from .solver import EpochResult, EpochSolver

logger = logging.getLogger(__name__)


class SolverFactory:
    """
    Create per-receiver solvers with explicit indices.

    Each solver gets its own resolver and sink from the factories so that
    no mutable state is shared between receivers.
    """

    def __init__(self, config: Optional[EstimatorConfig] = None,
                 resolver_factory: Optional[Callable[[], AmbiguityFixResolver]] = None,
                 sink_factory: Optional[Callable[[SourceID], ResidualSink]] = None):
        self.config = config if config is not None else EstimatorConfig()
        self.resolver_factory = resolver_factory
        self.sink_factory = sink_factory
        self._next_index = 0

    def create(self, source: SourceID) -> EpochSolver:
        index = self._next_index
        self._next_index += 1
        resolver = self.resolver_factory() if self.resolver_factory is not None else None
        sink = self.sink_factory(source) if self.sink_factory is not None else None
        logger.debug(f"Created solver {index} for {source}")
        return EpochSolver(source, self.config, resolver, sink, index)


class MultiReceiverProcessor:
    """
    Run one independent filter per receiver over a stream of epoch batches.

    Every receiver's pipeline is strictly sequential; receivers are
    processed concurrently when ``config.enable_parallel`` is set. The
    results do not depend on that switch. The thread pool is created on the
    first parallel batch and kept until ``close``.

    Examples
    --------
    >>> with MultiReceiverProcessor(SolverFactory(config)) as processor:
    ...     results = processor.process({rover: rover_epoch, base: base_epoch})
    >>> results[rover].position()
    """

    def __init__(self, factory: Optional[SolverFactory] = None):
        self.factory = factory if factory is not None else SolverFactory()
        self.solvers: Dict[SourceID, EpochSolver] = {}
        self._executor: Optional[ThreadPoolExecutor] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Shut down the thread pool, if one was started"""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.config.max_workers)
            logger.debug(f"Started thread pool (max_workers={self.config.max_workers})")
        return self._executor

    @property
    def config(self) -> EstimatorConfig:
        return self.factory.config

    def solver(self, source: SourceID) -> EpochSolver:
        """Solver of a receiver, created on first use"""
        if source not in self.solvers:
            self.solvers[source] = self.factory.create(source)
        return self.solvers[source]

    def process(self, batch: Mapping[SourceID, EpochObservations]) -> Dict[SourceID, EpochResult]:
        """
        Process one epoch of every receiver in the batch

        Parameters
        ----------
        batch : Mapping[SourceID, EpochObservations]
            Observations per receiver

        Returns
        -------
        Dict[SourceID, EpochResult]
            Results in receiver order
        """
        sources: List[SourceID] = sorted(batch)
        for source in sources:
            if batch[source].source != source:
                raise ValueError(f"Batch entry {source} holds observations of {batch[source].source}")

        # Solvers are created here, on the calling thread
        jobs = [(self.solver(source), batch[source]) for source in sources]

        if self.config.enable_parallel and len(jobs) > 1:
            executor = self._get_executor()
            futures = [executor.submit(solver.process, epoch) for solver, epoch in jobs]
            results = [future.result() for future in futures]
        else:
            results = [solver.process(epoch) for solver, epoch in jobs]

        return dict(zip(sources, results))
