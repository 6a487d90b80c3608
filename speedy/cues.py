"""Short sine-tone cues for start, split and finish."""
from __future__ import annotations

from typing import Optional

import numpy as np

SAMPLE_RATE = 44100
AMPLITUDE = 0.20

# kind -> (frequency Hz, duration s)
CUES = {
    "start": (1.5 * 440.0, 0.1),
    "split": (440.0, 0.1),
    "finish": (0.5 * 440.0, 0.5),
}


def tone(freq: float, duration: float, *, sample_rate: int = SAMPLE_RATE,
         amplitude: float = AMPLITUDE) -> np.ndarray:
    """16-bit mono sine samples."""
    n = int(sample_rate * duration)
    t = np.arange(n, dtype=np.float64) / sample_rate
    wave = amplitude * np.sin(2 * np.pi * freq * t)
    return (wave * 32767).astype(np.int16)


class CuePlayer:
    """Plays cues through pygame.mixer; disables itself if audio is unavailable."""

    def __init__(self, *, enabled: bool = True, sample_rate: int = SAMPLE_RATE):
        self.enabled = enabled
        self.sample_rate = sample_rate
        self._sounds: Optional[dict] = None

    def _load(self) -> None:
        import pygame

        try:
            if not pygame.mixer.get_init():
                pygame.mixer.init(frequency=self.sample_rate, size=-16, channels=1)
            freq, _size, channels = pygame.mixer.get_init()
            sounds = {}
            for kind, (hz, secs) in CUES.items():
                samples = tone(hz, secs, sample_rate=freq)
                if channels > 1:
                    samples = np.repeat(samples[:, None], channels, axis=1)
                sounds[kind] = pygame.sndarray.make_sound(np.ascontiguousarray(samples))
        except pygame.error as exc:
            print(f"[AUDIO] disabled: {exc}")
            self.enabled = False
            return
        self._sounds = sounds

    def __call__(self, kind: str) -> None:
        if not self.enabled:
            return
        if self._sounds is None:
            self._load()
            if self._sounds is None:
                return
        sound = self._sounds.get(kind)
        if sound is not None:
            sound.play()
