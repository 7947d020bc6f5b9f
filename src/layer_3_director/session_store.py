import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Optional


@dataclass
class SessionSnapshot:
    """Where playback stood after the last completed block"""
    timeline_id: str
    cursor: int
    position: float = 0.0
    saved_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> 'SessionSnapshot':
        return cls(
            timeline_id=data["timeline_id"],
            cursor=int(data["cursor"]),
            position=float(data.get("position", 0.0)),
            saved_at=data.get("saved_at") or datetime.now().isoformat()
        )


class SessionStore:
    """Best-effort session snapshots in a JSON file. Failures never reach playback."""

    def __init__(self, session_file: str = "data/session/session.json", max_age_hours: float = 24):
        self.session_file = Path(session_file)
        self.max_age = timedelta(hours=max_age_hours)

    def save_snapshot(self, snapshot: SessionSnapshot) -> bool:
        try:
            self.session_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.session_file, 'w', encoding='utf-8') as f:
                json.dump(snapshot.to_dict(), f, ensure_ascii=False, indent=2)
            return True
        except Exception as e:
            print(f"⚠️ [Session] Failed to save snapshot: {e}")
            return False

    def load_snapshot(self) -> Optional[SessionSnapshot]:
        """Return the saved snapshot, or None when missing, unreadable or older than max age"""
        if not self.session_file.exists():
            return None
        try:
            with open(self.session_file, 'r', encoding='utf-8') as f:
                snapshot = SessionSnapshot.from_dict(json.load(f))
            saved_at = datetime.fromisoformat(snapshot.saved_at)
        except Exception as e:
            print(f"⚠️ [Session] Failed to load snapshot: {e}")
            return None

        if datetime.now() - saved_at > self.max_age:
            print("🗑️ [Session] Snapshot expired")
            self.clear()
            return None
        return snapshot

    def clear(self) -> None:
        try:
            if self.session_file.exists():
                self.session_file.unlink()
        except Exception as e:
            print(f"⚠️ [Session] Failed to clear snapshot: {e}")
