"""Audio file loading and validation."""

import librosa
import numpy as np
from pathlib import Path
from typing import List, Tuple, Optional
import soundfile as sf

from mixlab.common.logging import get_logger
from mixlab.core.errors import AudioLoadError

logger = get_logger(__name__)


class AudioLoader:
    """
    Decode audio files for analysis.

    Channels are kept ((channels, n) for multi-channel files); the
    analyzers do their own mixdown.
    """

    SUPPORTED_FORMATS = {'.wav', '.flac', '.ogg', '.aiff', '.aif'}

    def __init__(self, sample_rate: Optional[int] = 44100):
        """
        Initialize audio loader.

        Args:
            sample_rate: Target sample rate (None = keep the file's rate)
        """
        self.sample_rate = sample_rate

    @classmethod
    def is_supported_format(cls, file_path: str) -> bool:
        suffix = Path(file_path).suffix.lower()
        return suffix in cls.SUPPORTED_FORMATS

    def load(
        self,
        file_path: str,
        duration: Optional[float] = None,
        offset: float = 0.0
    ) -> Tuple[np.ndarray, int]:
        """
        Load audio file.

        Args:
            file_path: Path to audio file
            duration: Duration to load in seconds (None = entire file)
            offset: Start offset in seconds

        Returns:
            Tuple of (audio_data, sample_rate), audio float32

        Raises:
            AudioLoadError: missing file, unsupported format or decode failure
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise AudioLoadError("Audio file not found", data={"file": str(file_path)})

        if not self.is_supported_format(str(file_path)):
            raise AudioLoadError(
                f"Unsupported format: {file_path.suffix}",
                data={"file": str(file_path), "supported": sorted(self.SUPPORTED_FORMATS)},
            )

        try:
            info = sf.info(str(file_path))
            start = int(offset * info.samplerate)
            stop = start + int(duration * info.samplerate) if duration is not None else None

            data, sr = sf.read(str(file_path), start=start, stop=stop, dtype='float32', always_2d=True)
        except Exception as e:
            raise AudioLoadError("Failed to decode audio file", data={"file": str(file_path)}, cause=e)

        # soundfile returns (n, channels)
        y = data.T
        if y.shape[0] == 1:
            y = y[0]

        if self.sample_rate and sr != self.sample_rate:
            y = librosa.resample(y, orig_sr=sr, target_sr=self.sample_rate, axis=-1)
            sr = self.sample_rate

        y = np.ascontiguousarray(y, dtype=np.float32)
        logger.info(f"Loaded {file_path.name}", data={
            "file": file_path.name,
            "duration_sec": round(y.shape[-1] / sr, 2),
            "sr": sr,
            "channels": 1 if y.ndim == 1 else y.shape[0],
        })
        return y, sr

    def get_duration(self, file_path: str) -> float:
        """
        Get audio file duration without loading entire file.

        Raises:
            AudioLoadError: file missing or unreadable
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise AudioLoadError("Audio file not found", data={"file": str(file_path)})

        try:
            return sf.info(str(file_path)).duration
        except Exception as e:
            raise AudioLoadError("Failed to read audio header", data={"file": str(file_path)}, cause=e)


def find_audio_files(root: str, recursive: bool = True) -> List[Path]:
    """Supported audio files under root (or root itself when it is a file), sorted."""
    path = Path(root)
    if path.is_file():
        return [path] if AudioLoader.is_supported_format(str(path)) else []

    pattern = '**/*' if recursive else '*'
    return sorted(
        p for p in path.glob(pattern)
        if p.is_file() and AudioLoader.is_supported_format(str(p))
    )
