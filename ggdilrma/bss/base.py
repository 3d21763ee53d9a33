import enum
from typing import Callable, List, Optional, Union

import numpy as np

from ..utils._logging import logger
from ._validation import check_n_iter

__all__ = [
    "State",
    "IterativeMethodBase",
]


class State(str, enum.Enum):
    """Progress of an iterative method."""

    INITIALIZED = "initialized"
    RUNNING = "running"
    DONE = "done"


class IterativeMethodBase:
    r"""Base class of iterative method.

    A run moves from ``State.INITIALIZED`` to ``State.RUNNING``,
    which lasts exactly ``n_iter`` sweeps of ``update_once``, and ends in ``State.DONE``.

    Args:
        callbacks (callable or list[callable], optional):
            Callback functions. Each function is called before separation and at each iteration.
            Default: ``None``.
        record_loss (bool):
            Record the loss at each iteration of the update algorithm if ``record_loss=True``.
            Default: ``True``.
    """

    def __init__(
        self,
        callbacks: Optional[
            Union[
                Callable[["IterativeMethodBase"], None],
                List[Callable[["IterativeMethodBase"], None]],
            ]
        ] = None,
        record_loss: bool = True,
    ) -> None:
        if callable(callbacks):
            callbacks = [callbacks]

        self.callbacks = callbacks
        self.record_loss = record_loss
        self.loss = [] if record_loss else None

        self.state = State.INITIALIZED
        self.n_iter_done = 0

    def __call__(
        self, *args, n_iter: int = 100, initial_call: bool = True, **kwargs
    ) -> np.ndarray:
        r"""Iteratively call ``update_once``.

        Args:
            n_iter (int):
                The number of sweeps.
                Default: ``100``.
            initial_call (bool):
                If ``True``, record the loss and perform callbacks before the first sweep.
        """
        check_n_iter(n_iter)

        if self.record_loss and self.loss is None:
            self.loss = []

        if initial_call:
            self._record()
            self._run_callbacks()

        self.state = State.RUNNING

        for _ in range(n_iter):
            self.update_once()
            self.n_iter_done += 1

            loss = self._record()

            if loss is None:
                logger.debug("Sweep {}/{}", self.n_iter_done, n_iter)
            else:
                logger.debug("Sweep {}/{}: loss={:.6e}", self.n_iter_done, n_iter, loss)

            self._run_callbacks()

        self.state = State.DONE

    def _record(self) -> Optional[float]:
        if not self.record_loss:
            return None

        loss = self.compute_loss()
        self.loss.append(loss)

        return loss

    def _run_callbacks(self) -> None:
        if self.callbacks is None:
            return

        for callback in self.callbacks:
            callback(self)

    def update_once(self) -> None:
        r"""Update parameters once."""
        raise NotImplementedError("Implement 'update_once' method.")

    def compute_loss(self) -> float:
        r"""Compute loss.

        Returns:
            Computed loss. The type is expected ``float``.
        """
        raise NotImplementedError("Implement 'compute_loss' method.")
