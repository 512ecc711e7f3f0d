"""Configuration tests.

Covers:
    - SpectralConfig validation and resolution presets
    - AnalysisConfig.from_dict / from_config (YAML)
    - Config dot-path access
    - Settings from environment
"""

import pytest


# =============================================================================
# SPECTRAL CONFIG TESTS
# =============================================================================

@pytest.mark.unit
class TestSpectralConfig:

    def test_defaults(self):
        from mixlab.modules.analysis.config import SpectralConfig, WindowType

        config = SpectralConfig()
        assert config.frame_size == 2048
        assert config.hop_size == 512
        assert config.window_type is WindowType.HANN
        assert config.frame_rate == pytest.approx(44100 / 512)

    def test_window_type_from_string(self):
        from mixlab.modules.analysis.config import SpectralConfig, WindowType

        assert SpectralConfig(window_type="Kaiser").window_type is WindowType.KAISER
        assert SpectralConfig(window_type="blackman").to_dict()["window_type"] == "blackman"

    @pytest.mark.parametrize("overrides", [
        {"window_type": "triangle"},
        {"frame_size": 0},
        {"hop_size": 4096},
        {"min_freq": 12000.0},
        {"max_freq": 30000.0},
        {"default_tempo": 0.0},
        {"mel_bands": -1},
    ])
    def test_invalid_values_raise(self, overrides):
        """
        ЧТО ПРОВЕРЯЕМ:
            Inconsistent spectral settings fail at construction
        """
        from mixlab.core.errors import ConfigurationError
        from mixlab.modules.analysis.config import SpectralConfig

        with pytest.raises(ConfigurationError):
            SpectralConfig(**overrides)

    def test_resolution_presets(self):
        from mixlab.modules.analysis.config import SpectralConfig, Resolution

        high = SpectralConfig.for_resolution(Resolution.HIGH)
        assert (high.frame_size, high.hop_size) == (4096, 256)

        low = SpectralConfig.for_resolution(Resolution.LOW, window_type="hamming")
        assert (low.frame_size, low.hop_size) == (1024, 512)
        assert low.window_type.value == "hamming"


@pytest.mark.unit
def test_mood_config_validation():
    from mixlab.core.errors import ConfigurationError
    from mixlab.modules.analysis.config import MoodConfig

    with pytest.raises(ConfigurationError):
        MoodConfig(smoothing_window=0)
    with pytest.raises(ConfigurationError):
        MoodConfig(segment_duration_sec=0)


@pytest.mark.unit
def test_min_window_is_sixteen_beats_at_reference():
    from mixlab.modules.analysis.config import MixPointConfig

    assert MixPointConfig().min_window_sec == pytest.approx(7.5)
    assert MixPointConfig(reference_bpm=120.0).min_window_sec == pytest.approx(8.0)


# =============================================================================
# ANALYSIS CONFIG TESTS
# =============================================================================

@pytest.mark.unit
class TestAnalysisConfig:

    def test_from_dict(self):
        from mixlab.modules.analysis.config import AnalysisConfig

        config = AnalysisConfig.from_dict({
            "spectral": {"resolution": "high", "window_type": "hamming"},
            "mood": {"segment_duration_sec": 5.0},
            "transitions": {"phrase_beats": 32},
            "max_workers": 2,
        })

        assert config.spectral.frame_size == 4096
        assert config.spectral.window_type.value == "hamming"
        assert config.mood.segment_duration_sec == 5.0
        assert config.transitions.phrase_beats == 32
        assert config.mix_points.intro_search_sec == 60.0
        assert config.max_workers == 2

    def test_empty_dict_gives_defaults(self):
        from mixlab.modules.analysis.config import AnalysisConfig

        assert AnalysisConfig.from_dict(None) == AnalysisConfig()

    def test_unknown_section_key(self):
        from mixlab.core.errors import ConfigurationError
        from mixlab.modules.analysis.config import AnalysisConfig

        with pytest.raises(ConfigurationError) as exc_info:
            AnalysisConfig.from_dict({"mood": {"segment_sec": 5}})
        assert exc_info.value.data == {"section": "mood", "keys": ["segment_sec"]}

    def test_unknown_top_level_key(self):
        from mixlab.core.errors import ConfigurationError
        from mixlab.modules.analysis.config import AnalysisConfig

        with pytest.raises(ConfigurationError):
            AnalysisConfig.from_dict({"cache": {}})

    def test_unknown_resolution(self):
        from mixlab.core.errors import ConfigurationError
        from mixlab.modules.analysis.config import AnalysisConfig

        with pytest.raises(ConfigurationError):
            AnalysisConfig.from_dict({"spectral": {"resolution": "ultra"}})

    def test_from_default_yaml(self, project_root):
        from mixlab.common.logging import Config
        from mixlab.modules.analysis.config import AnalysisConfig

        config = AnalysisConfig.from_config(Config(str(project_root / "config" / "default_config.yaml")))

        assert config == AnalysisConfig()


# =============================================================================
# YAML CONFIG TESTS
# =============================================================================

@pytest.mark.unit
class TestYamlConfig:

    def test_dot_path_access(self, tmp_path):
        from mixlab.common.logging import Config

        path = tmp_path / "config.yaml"
        path.write_text("spectral:\n  hop_size: 256\nlogging:\n  log_file: ~/mixlab.log\n")
        config = Config(str(path))

        assert config.get("spectral.hop_size") == 256
        assert config.get("spectral.missing", "fallback") == "fallback"
        assert config.spectral == {"hop_size": 256}
        assert config.mood == {}
        assert not config.get("logging.log_file").startswith("~")

    def test_set_and_save(self, tmp_path):
        from mixlab.common.logging import Config

        path = tmp_path / "config.yaml"
        path.write_text("mood: {}\n")
        config = Config(str(path))
        config.set("transitions.phrase_beats", 32)

        out = tmp_path / "out" / "saved.yaml"
        config.save(str(out))

        assert Config(str(out)).get("transitions.phrase_beats") == 32

    def test_missing_file(self, tmp_path):
        from mixlab.common.logging import Config

        with pytest.raises(FileNotFoundError):
            Config(str(tmp_path / "absent.yaml"))


# =============================================================================
# SETTINGS TESTS
# =============================================================================

@pytest.mark.unit
class TestSettings:

    def test_from_environment(self, monkeypatch):
        from mixlab.core.config import Settings, LogLevel, RegistryMode

        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("LOG_JSON", "TRUE")
        monkeypatch.setenv("SAMPLE_RATE", "48000")
        monkeypatch.setenv("ANALYSIS_MAX_WORKERS", "8")
        monkeypatch.setenv("REGISTRY_MODE", "Reject")

        settings = Settings()

        assert settings.log_level is LogLevel.DEBUG
        assert settings.log_json is True
        assert settings.sample_rate == 48000
        assert settings.max_workers == 8
        assert settings.registry_mode is RegistryMode.REJECT

    def test_singleton_reset(self, monkeypatch):
        from mixlab.core.config import get_settings, reset_settings

        reset_settings()
        monkeypatch.setenv("SAMPLE_RATE", "22050")
        first = get_settings()

        assert get_settings() is first
        assert first.sample_rate == 22050

        reset_settings()
        monkeypatch.delenv("SAMPLE_RATE")
        assert get_settings().sample_rate == 44100
        reset_settings()
