import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Optional


@dataclass
class ListenerMail:
    content: str
    received_at: float = field(default_factory=time.time)


class ListenerMailQueue:
    """FIFO of listener requests; one is consumed per generated timeline"""

    def __init__(self, max_size: int = 50):
        self._queue: Deque[ListenerMail] = deque(maxlen=max_size)

    def submit(self, text: str) -> bool:
        text = (text or "").strip()
        if not text:
            return False
        self._queue.append(ListenerMail(content=text))
        print(f"📮 [Mail] Listener request queued ({len(self._queue)} waiting)")
        return True

    def get_next(self) -> Optional[str]:
        if not self._queue:
            return None
        return self._queue.popleft().content

    def __len__(self) -> int:
        return len(self._queue)
