from __future__ import annotations

import json
import random
from dataclasses import dataclass, field
from hashlib import sha256
from typing import Dict, Sequence, Tuple, TypeVar

T = TypeVar("T")

SALT = "uptime-rng-v1"


def _canonical_scope(scope: Dict[str, object] | None) -> str:
    if not scope:
        return "{}"
    return json.dumps({str(k): v for k, v in scope.items()}, sort_keys=True, separators=(",", ":"))


@dataclass
class RNGService:
    """Seeded draws split into independent named streams.

    Every draw derives a throwaway ``random.Random`` from the seed, the stream
    key, an optional scope and the per-stream draw index, so the only state is
    ``counters``.  Adding draws to one stream never shifts another.
    """

    seed: str
    counters: Dict[str, int] = field(default_factory=dict)

    def _stream_id(self, stream_key: str, scope_json: str) -> str:
        digest = sha256(f"{SALT}|{self.seed}|{stream_key}|{scope_json}".encode()).hexdigest()
        return digest[:16]

    def _derived_seed(self, stream_key: str, scope_json: str, draw_index: int) -> int:
        blob = f"{SALT}|{self.seed}|{stream_key}|{scope_json}|{draw_index}"
        return int.from_bytes(sha256(blob.encode()).digest()[:8], "big", signed=False)

    def _derive(self, stream_key: str, scope: Dict[str, object] | None) -> Tuple[random.Random, str]:
        scope_json = _canonical_scope(scope)
        stream_id = self._stream_id(stream_key, scope_json)
        draw_index = self.counters.get(stream_id, 0)
        self.counters[stream_id] = draw_index + 1
        return random.Random(self._derived_seed(stream_key, scope_json, draw_index)), stream_id

    def rand(self, stream_key: str, *, scope: Dict[str, object] | None = None) -> float:
        rng, _ = self._derive(stream_key, scope)
        return rng.random()

    def uniform(self, stream_key: str, a: float, b: float, *, scope: Dict[str, object] | None = None) -> float:
        rng, _ = self._derive(stream_key, scope)
        return rng.uniform(a, b)

    def randint(self, stream_key: str, a: int, b: int, *, scope: Dict[str, object] | None = None) -> int:
        rng, _ = self._derive(stream_key, scope)
        return rng.randint(a, b)

    def chance(self, stream_key: str, p: float, *, scope: Dict[str, object] | None = None) -> bool:
        return self.rand(stream_key, scope=scope) < p

    def choice(self, stream_key: str, seq: Sequence[T], *, scope: Dict[str, object] | None = None) -> T:
        rng, _ = self._derive(stream_key, scope)
        if not seq:
            raise IndexError("Cannot choose from an empty sequence")
        return seq[rng.randrange(len(seq))]

    def signature(self) -> str:
        payload = json.dumps(sorted(self.counters.items()), separators=(",", ":"))
        return sha256(payload.encode()).hexdigest()[:16]

    def snapshot(self) -> Dict[str, object]:
        return {"seed": self.seed, "counters": dict(sorted(self.counters.items()))}

    @classmethod
    def restore(cls, payload: Dict[str, object]) -> "RNGService":
        counters = payload.get("counters") or {}
        return cls(seed=str(payload["seed"]), counters={str(k): int(v) for k, v in dict(counters).items()})


__all__ = ["RNGService"]
