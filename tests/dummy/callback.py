from ggdilrma.bss.base import IterativeMethodBase


class DummyCallback:
    def __init__(self) -> None:
        self.n_calls = 0

    def __call__(self, method: IterativeMethodBase) -> None:
        self.n_calls += 1

        if method.record_loss:
            assert len(method.loss) == method.n_iter_done + 1


def dummy_function(method: IterativeMethodBase) -> None:
    pass
