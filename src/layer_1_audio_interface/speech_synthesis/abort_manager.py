import threading


class SynthesisAbortManager:
    """
    Cooperative abort for in-flight synthesis requests.
    Each request captures the current generation; abort() moves to a new
    generation so results of older requests are discarded on arrival.
    """

    def __init__(self):
        self._generation = 0
        self._is_aborted = threading.Event()
        self._lock = threading.Lock()

    @property
    def generation(self) -> int:
        return self._generation

    def abort(self) -> None:
        with self._lock:
            self._generation += 1
            self._is_aborted.set()
        print("🚨 [TTS] All synthesis requests aborted")

    def reset(self) -> None:
        """Accept new requests again after an abort"""
        with self._lock:
            self._generation += 1
            self._is_aborted.clear()

    def is_aborted(self, generation: int) -> bool:
        """True if a request started under `generation` must not deliver its result"""
        return self._is_aborted.is_set() or generation != self._generation
