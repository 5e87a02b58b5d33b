from tqdm import tqdm


class TqdmProgress:
    """
    Fraction-complete callback that drives a tqdm bar.
    Pass an instance as GridSearchRunner(progress=...); close() when done.
    A fraction lower than the bar's position (a new run on the same runner) restarts the bar.
    """

    def __init__(
        self,
        total: int = 100,
        *,
        desc: str = "grid search",
        unit: str = "%",
        disable: bool = False,
    ) -> None:
        self.total = int(total)
        self._n = 0
        self._bar = tqdm(total=self.total, desc=desc, unit=unit, disable=disable)

    @property
    def n(self) -> int:
        return self._n

    def __call__(self, fraction: float) -> None:
        target = min(self.total, int(round(float(fraction) * self.total)))
        if target < self._n:
            self._bar.reset(total=self.total)
            self._n = 0
        if target > self._n:
            self._bar.update(target - self._n)
            self._n = target

    def close(self) -> None:
        self._bar.close()

    def __enter__(self) -> "TqdmProgress":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
