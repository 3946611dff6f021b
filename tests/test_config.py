"""
Unit tests for configuration loading and filter state normalization.
"""

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from scene_filter import logging_config
from scene_filter.config import (
    Config,
    DetectorConfig,
    FilterState,
    LoggingConfig,
    SourcesConfig,
    StorageConfig,
)


class TestConfigDefaults:
    """Test default configuration values."""

    def test_default_filter_state(self):
        state = FilterState()

        assert state.enabled is True
        assert state.safe_mode == "MEDIUM"
        assert state.confidence_threshold == 70
        assert state.category_actions == {"sexual": "skip", "nudity": "blur"}
        assert state.selected_movie is None
        assert state.movie_id is None

    def test_default_detector_config(self):
        config = DetectorConfig()

        assert config.cadence == 1.2
        assert config.buffer_window == 5.0
        assert config.fusion_window == 2.2
        assert config.seek_jump_threshold == 2.2
        assert config.interaction_guard == 1.8
        assert config.audio_warmup == 8
        assert config.visual_delta == 0.32
        assert config.frame_grid == (64, 36)
        assert config.emitted_capacity == 300

    def test_default_sources_config(self):
        config = SourcesConfig()

        assert [m["name"] for m in config.community_urls] == ["community-raw", "community-jsdelivr"]
        assert config.cache_ttl_seconds == 300
        assert config.metadata_ttl_seconds == 86400

    def test_mirror_lists_are_independent(self):
        a = SourcesConfig()
        a.community_urls[0]["url"] = "https://changed.example"
        assert SourcesConfig().community_urls[0]["url"] != "https://changed.example"

    def test_default_storage_config(self):
        assert StorageConfig().ai_segment_limit == 300
        assert StorageConfig().path.endswith("store.json")

    def test_default_logging_config(self):
        assert LoggingConfig().level == "INFO"


class TestFilterState:
    """Tests for settings normalization."""

    def test_from_dict_camel_case(self):
        state = FilterState.from_dict({
            "safeMode": "strict",
            "confidenceThreshold": 55,
            "audioOnlyMode": True,
            "selectedMovie": {"imdbID": "tt0111161", "title": "The Shawshank Redemption"},
        })

        assert state.safe_mode == "STRICT"
        assert state.confidence_threshold == 55
        assert state.audio_only_mode is True
        assert state.movie_id == "tt0111161"

    def test_booleans_must_be_booleans(self):
        state = FilterState.from_dict({"enabled": "no", "debug_mode": 0})
        assert state.enabled is True
        assert state.debug_mode is True

    def test_unknown_safe_mode_falls_back(self):
        assert FilterState.from_dict({"safe_mode": "EXTREME"}).safe_mode == "MEDIUM"

    @pytest.mark.parametrize("value,expected", [
        (150, 100),
        (-5, 0),
        ("abc", 70),
        (0, 70),
        ("85", 85),
    ])
    def test_threshold_clamped(self, value, expected):
        assert FilterState.from_dict({"confidence_threshold": value}).confidence_threshold == expected

    def test_auto_skip_delay_clamped(self):
        assert FilterState.from_dict({"auto_skip_delay_sec": 30}).auto_skip_delay_sec == 10

    def test_category_actions_fall_back_per_category(self):
        state = FilterState.from_dict({"category_actions": {"nudity": "mute", "violence": "skip"}})
        assert state.category_actions == {"sexual": "skip", "nudity": "mute"}

    def test_merged_keeps_current_values(self):
        current = FilterState(safe_mode="LIGHT", adaptive_mode=False,
                              selected_movie={"imdbID": "tt1"})
        updated = current.merged({"safe_mode": "bogus", "confidence_threshold": 90})

        assert updated.safe_mode == "LIGHT"
        assert updated.adaptive_mode is False
        assert updated.confidence_threshold == 90
        assert updated.movie_id == "tt1"
        assert current.confidence_threshold == 70

    def test_to_dict_round_trip(self):
        state = FilterState(safe_mode="STRICT", selected_movie={"imdbID": "tt2"})
        assert FilterState.from_dict(state.to_dict()) == state


class TestConfigLoading:
    """Test loading configuration from YAML."""

    def test_load_nonexistent_uses_defaults(self, tmp_path):
        config = Config.load(tmp_path / "missing.yaml")
        assert config.detector.cadence == 1.2

    def test_load_none_uses_defaults(self):
        assert Config.load(None).filter.safe_mode == "MEDIUM"

    def test_load_partial(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "filter:\n"
            "  safe_mode: STRICT\n"
            "detector:\n"
            "  cadence: 0.5\n"
            "  frame_grid: [32, 18]\n"
            "  unknown_key: 1\n"
            "storage:\n"
            "  ai_segment_limit: 50\n"
        )

        config = Config.load(path)

        assert config.filter.safe_mode == "STRICT"
        assert config.detector.cadence == 0.5
        assert config.detector.frame_grid == (32, 18)
        assert config.detector.fusion_window == 2.2
        assert not hasattr(config.detector, "unknown_key")
        assert config.storage.ai_segment_limit == 50

    def test_save_and_reload(self, tmp_path):
        path = tmp_path / "config.yaml"
        config = Config()
        config.filter.safe_mode = "LIGHT"
        config.detector.visual_delta = 0.5
        config.save(path)

        loaded = Config.load(path)
        assert loaded.filter.safe_mode == "LIGHT"
        assert loaded.detector.visual_delta == 0.5
        assert loaded.detector.frame_grid == (64, 36)

    @pytest.mark.parametrize("content", ["- filter\n- detector\n", "just some text\n", "42\n"])
    def test_non_mapping_file_uses_defaults(self, tmp_path, content):
        path = tmp_path / "config.yaml"
        path.write_text(content)

        config = Config.load(path)

        assert config.filter.safe_mode == "MEDIUM"
        assert config.detector.cadence == 1.2

    def test_setup_logging_passes_settings(self):
        config = Config()
        config.logging.level = "WARNING"
        config.logging.debug_mode = True

        with patch("scene_filter.config.setup_logging") as setup:
            config.setup_logging()

        setup.assert_called_once_with(level="WARNING", log_file=None, debug_mode=True)


@pytest.fixture
def isolated_logging(monkeypatch, tmp_path):
    monkeypatch.setattr(logging_config, "LOG_DIR", tmp_path / "logs")
    monkeypatch.setattr(logging_config, "_logging_initialized", False)
    yield tmp_path
    namespace_logger = logging.getLogger(logging_config.LOGGER_NAMESPACE)
    for handler in list(namespace_logger.handlers):
        handler.close()
    namespace_logger.handlers.clear()


class TestLoggingSetup:
    """Tests for the central logging setup."""

    def test_level_and_main_file(self, isolated_logging):
        main_log = isolated_logging / "main.log"

        logger = logging_config.setup_logging(level="warning", log_file=str(main_log), console=False)

        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1
        assert main_log.exists()

    def test_debug_mode_adds_detailed_file(self, isolated_logging):
        logger = logging_config.setup_logging(
            level="INFO", log_file=str(isolated_logging / "main.log"), console=False, debug_mode=True
        )

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 2
        assert (isolated_logging / "logs" / logging_config.DEBUG_LOG_FILE_NAME).exists()

    def test_second_call_is_ignored_without_force(self, isolated_logging):
        first = logging_config.setup_logging(log_file=str(isolated_logging / "main.log"), console=False)
        handlers = list(first.handlers)

        second = logging_config.setup_logging(level="DEBUG", console=False, debug_mode=True)

        assert second.handlers == handlers
        assert second.level == logging.INFO
